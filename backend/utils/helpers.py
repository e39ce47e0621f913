"""
Small helpers: identifiers, passwords, verification codes, slugs
"""
import re
import secrets
from datetime import datetime, timezone

from sqlalchemy import func

PASSWORD_WORDS = [
    'Alpha', 'Beta', 'Gamma', 'Delta', 'Echo', 'Foxtrot', 'Golf', 'Hotel',
    'India', 'Juliet', 'Kilo', 'Lima', 'Mike', 'November', 'Oscar', 'Papa',
    'Quebec', 'Romeo', 'Sierra', 'Tango', 'Uniform', 'Victor', 'Whiskey',
    'Xray', 'Yankee', 'Zulu', 'Blue', 'Red', 'Green', 'Yellow', 'Purple',
    'Orange', 'Pink', 'Brown', 'Gray', 'Black', 'White', 'Silver', 'Gold',
    'Sky', 'Ocean', 'River', 'Mountain', 'Forest', 'Desert', 'Valley', 'Peak',
]

SUID_PREFIX = 'STU'


def generate_password():
    """Readable random password: three words and a number, e.g. Blue-Sky-Moon-42"""
    words = [secrets.choice(PASSWORD_WORDS) for _ in range(3)]
    return f"{'-'.join(words)}-{secrets.randbelow(100)}"


def generate_verification_code():
    """Six digit numeric code"""
    return f'{secrets.randbelow(1_000_000):06d}'


def generate_session_token():
    return secrets.token_urlsafe(32)


def generate_suid(year=None):
    """
    Next student id for the year: STU-<year>-<6 digit sequence>.
    Must be called inside an app context.
    """
    from app import db
    from models.student import Student

    year = year or datetime.now(timezone.utc).year
    prefix = f'{SUID_PREFIX}-{year}-'

    last = (
        db.session.query(func.max(Student.suid))
        .filter(Student.suid.like(f'{prefix}%'))
        .scalar()
    )
    sequence = int(last[len(prefix):]) + 1 if last else 1
    return f'{prefix}{sequence:06d}'


def slugify(value):
    slug = re.sub(r'[^a-z0-9]+', '-', (value or '').lower()).strip('-')
    return re.sub(r'-+', '-', slug)


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')
