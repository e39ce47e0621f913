"""
Base model with common fields for all models.
This will be inherited by all other models.
"""
from datetime import datetime, date, timezone
from decimal import Decimal
import uuid

from app import db


def generate_uuid():
    """Generate a UUID string for primary keys"""
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp (columns are stored without timezone)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def serialize_value(value):
    """Make a column value JSON friendly"""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class BaseModel(db.Model):
    """
    Abstract base model that all other models will inherit from.
    Contains common fields like id, created_at, updated_at.
    """
    __abstract__ = True  # SQLAlchemy won't create a table for this class

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self):
        """
        Convert model instance to dictionary.
        Useful for API responses.
        """
        return {
            column.name: serialize_value(getattr(self, column.name))
            for column in self.__table__.columns
        }

    def update(self, **kwargs):
        """
        Update model fields from keyword arguments.
        Returns self for method chaining.

        Example: course.update(title='Python 101', price=120)
        """
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

        self.updated_at = utcnow()
        return self

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.id}>'
