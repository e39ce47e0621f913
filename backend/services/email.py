"""
Transactional email through the Resend HTTP API
Templates live in templates/email and are rendered with Flask's Jinja environment.
"""
import logging

import httpx
from flask import current_app, render_template

logger = logging.getLogger(__name__)

SENDER_NAME = 'Cubis Academy'
REQUEST_TIMEOUT = 10.0


class EmailDeliveryError(Exception):
    """Resend rejected the message or could not be reached"""


def is_email_configured():
    return bool(current_app.config.get('RESEND_API_KEY'))


def send_email(to, subject, template, **context):
    """
    Render templates/email/<template> and send it.

    Returns the Resend message id, or None when email is not configured.
    Raises EmailDeliveryError on a failed delivery.
    """
    if not is_email_configured():
        logger.warning("[Email] RESEND_API_KEY not set, skipping '%s' to %s", subject, to)
        return None

    context.setdefault('app_url', current_app.config.get('APP_URL'))
    html = render_template(f'email/{template}', **context)

    payload = {
        'from': f"{SENDER_NAME} <{current_app.config['EMAIL_FROM']}>",
        'to': [to],
        'subject': subject,
        'html': html,
    }
    headers = {'Authorization': f"Bearer {current_app.config['RESEND_API_KEY']}"}

    try:
        response = httpx.post(current_app.config['RESEND_API_URL'], json=payload,
                              headers=headers, timeout=REQUEST_TIMEOUT)
    except httpx.HTTPError as e:
        logger.error("[Email] Could not reach Resend: %s", e)
        raise EmailDeliveryError(f'Failed to send email: {e}') from e

    if response.status_code >= 300:
        logger.error("[Email] Resend error %s: %s", response.status_code, response.text)
        raise EmailDeliveryError(f'Failed to send email ({response.status_code})')

    message_id = response.json().get('id')
    logger.info("[Email] Sent '%s' to %s (%s)", subject, to, message_id)
    return message_id


def send_verification_email(to, user_name, code, expires_in='24 hours'):
    return send_email(to, 'Verify Your Email - Cubis Academy', 'verification.html',
                      user_name=user_name, code=code, expires_in=expires_in)


def send_email_change_code(to, user_name, code, expires_in='24 hours'):
    return send_email(to, 'Confirm Your New Email - Cubis Academy', 'email_change.html',
                      user_name=user_name, code=code, expires_in=expires_in)


def send_welcome_email(to, user_name, role='student'):
    dashboard_url = f"{current_app.config.get('APP_URL')}/{role}"
    return send_email(to, 'Welcome to Cubis Academy!', 'welcome.html',
                      user_name=user_name, dashboard_url=dashboard_url)


def send_password_email(to, user_name, password, is_reset=False):
    subject = 'Your Password Has Been Reset' if is_reset else 'Your Cubis Academy Account'
    return send_email(to, subject, 'password.html',
                      user_name=user_name, email=to, password=password, is_reset=is_reset)


def send_payment_status_email(to, user_name, payment, course_title):
    status_label = {
        'completed': 'approved',
        'failed': 'rejected',
        'refunded': 'refunded',
    }.get(payment.status, payment.status)
    return send_email(to, f'Payment {status_label.title()} - Cubis Academy', 'payment_status.html',
                      user_name=user_name, amount=float(payment.amount), status=status_label,
                      course_title=course_title, notes=payment.notes)
