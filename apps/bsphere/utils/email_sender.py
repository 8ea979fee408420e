"""Outgoing email for OTP codes, password resets and document status updates.

Two delivery paths:
- SendGrid HTTP API when SENDGRID_API_KEY is set (production)
- SMTP when SMTP_SERVER is set (local development, e.g. Gmail app passwords)

Codes and reset links are never written to the log.
"""
import base64
import json
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import requests
from flask import current_app


SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


def _app_name() -> str:
    return current_app.config.get('APP_NAME', 'B-Sphere')


def _send_via_smtp(to_email: str, subject: str, body: str, attachment_data: bytes = None,
                   attachment_name: str = None, attachment_type: str = 'pdf') -> None:
    """Send through an SMTP relay with STARTTLS."""
    cfg = current_app.config
    smtp_server = cfg.get('SMTP_SERVER')
    smtp_port = cfg.get('SMTP_PORT', 587)
    smtp_username = cfg.get('SMTP_USERNAME')
    smtp_password = cfg.get('SMTP_PASSWORD')
    from_email = cfg.get('FROM_EMAIL') or smtp_username

    if not smtp_server:
        raise RuntimeError("SMTP_SERVER is not configured")
    if not smtp_username or not smtp_password:
        raise RuntimeError("SMTP_USERNAME and SMTP_PASSWORD are required for SMTP")
    if not from_email:
        raise RuntimeError("FROM_EMAIL is not configured")

    current_app.logger.info("Sending email to %s via SMTP (%s:%s)", to_email, smtp_server, smtp_port)

    msg = MIMEMultipart()
    msg['From'] = f"{_app_name()} <{from_email}>"
    msg['To'] = to_email
    msg['Subject'] = subject
    msg.attach(MIMEText(body, 'plain'))

    if attachment_data and attachment_name:
        part = MIMEApplication(attachment_data, _subtype=attachment_type)
        part.add_header('Content-Disposition', 'attachment', filename=attachment_name)
        msg.attach(part)

    try:
        with smtplib.SMTP(smtp_server, smtp_port) as server:
            server.starttls()
            server.login(smtp_username, smtp_password)
            server.sendmail(from_email, to_email, msg.as_string())
    except smtplib.SMTPAuthenticationError as e:
        current_app.logger.error("SMTP authentication failed: %s", e)
        raise RuntimeError(f"SMTP authentication failed: {e}") from e
    except (smtplib.SMTPException, OSError) as e:
        current_app.logger.error("SMTP error: %s", e)
        raise RuntimeError(f"SMTP error: {e}") from e

    current_app.logger.info("Email sent to %s via SMTP", to_email)


def _send_via_sendgrid(to_email: str, subject: str, body: str, attachment_data: bytes = None,
                       attachment_name: str = None, attachment_type: str = 'pdf') -> None:
    """Send through the SendGrid v3 mail API."""
    cfg = current_app.config
    api_key = cfg.get('SENDGRID_API_KEY')
    from_email = cfg.get('FROM_EMAIL')

    if not api_key:
        raise RuntimeError("SENDGRID_API_KEY is not configured")
    if not from_email:
        raise RuntimeError("FROM_EMAIL is not configured")

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "personalizations": [{"to": [{"email": to_email}]}],
        "from": {"email": from_email, "name": _app_name()},
        "subject": subject,
        "content": [{"type": "text/plain", "value": body}],
    }
    if attachment_data and attachment_name:
        payload["attachments"] = [{
            "content": base64.b64encode(attachment_data).decode('utf-8'),
            "type": f"application/{attachment_type}",
            "filename": attachment_name,
            "disposition": "attachment",
        }]

    current_app.logger.info("Sending email to %s via SendGrid", to_email)

    try:
        response = requests.post(SENDGRID_URL, headers=headers, json=payload, timeout=30)
    except requests.exceptions.RequestException as e:
        current_app.logger.error("SendGrid API request failed: %s", e)
        raise RuntimeError(f"SendGrid API request failed: {e}") from e

    # 202 Accepted on success
    if response.status_code not in (200, 201, 202):
        error_msg = f"SendGrid API error: {response.status_code}"
        try:
            error_msg += f" - {json.dumps(response.json())}"
        except ValueError:
            error_msg += f" - {response.text[:200]}"
        current_app.logger.error(error_msg)
        raise RuntimeError(error_msg)

    current_app.logger.info("Email sent to %s via SendGrid", to_email)


def _send_email(to_email: str, subject: str, body: str, attachment_data: bytes = None,
                attachment_name: str = None, attachment_type: str = 'pdf') -> None:
    """
    Send email using the configured provider.

    Priority:
    1. SendGrid API (if SENDGRID_API_KEY is set)
    2. SMTP (if SMTP_SERVER is set)
    """
    cfg = current_app.config

    if cfg.get('SENDGRID_API_KEY'):
        _send_via_sendgrid(to_email, subject, body, attachment_data, attachment_name, attachment_type)
        return

    if cfg.get('SMTP_SERVER'):
        _send_via_smtp(to_email, subject, body, attachment_data, attachment_name, attachment_type)
        return

    raise RuntimeError(
        "No email provider configured. "
        "Set SENDGRID_API_KEY for production or SMTP_SERVER/SMTP_USERNAME/SMTP_PASSWORD for development."
    )


def send_otp_email(to_email: str, code: str, expiry_minutes: int, subject: str = None) -> None:
    """Send a one-time verification code. Raises RuntimeError on delivery failure."""
    app_name = _app_name()
    subject = subject or f"{app_name} Verification Code"
    body = (
        f"Hello,\n\n"
        f"Your {app_name} verification code is: {code}\n\n"
        f"This code expires in {expiry_minutes} minutes. Do not share it with anyone.\n\n"
        f"If you did not request this code, you can ignore this email.\n\n"
        f"Barangay {current_app.config.get('BARANGAY_NAME', '')}"
    )
    _send_email(to_email, subject, body)


def send_password_reset_email(to_email: str, reset_link: str, ttl_minutes: int) -> None:
    app_name = _app_name()
    subject = f"{app_name}: Reset your password"
    body = (
        f"Hello,\n\n"
        f"We received a request to reset the password of your {app_name} admin account.\n\n"
        f"Open the link below within {ttl_minutes} minutes to choose a new password:\n"
        f"{reset_link}\n\n"
        f"If you did not request a reset, you can ignore this email.\n\n"
        f"{app_name} Team"
    )
    _send_email(to_email, subject, body)


def send_generic_email(to_email: str, subject: str, body: str) -> None:
    """Send a generic email, with fallback to logging if sending fails."""
    try:
        _send_email(to_email, subject, body)
    except RuntimeError as e:
        current_app.logger.warning("Email to %s not delivered (%s); subject=%s", to_email, e, subject)


def send_document_status_email(to_email: str, document_type: str, control_id: str, approved: bool,
                               requested_at: str = None) -> None:
    """Tell a resident their document request was approved or rejected."""
    app_name = _app_name()
    if approved:
        subject = f"{app_name}: Document Request Approved"
        body = (
            f"Your request for a {document_type} has been approved.\n"
            f"Control number: {control_id}\n"
            f"Date of request: {requested_at or 'N/A'}\n"
            "You may claim your document at the barangay hall.\n"
        )
    else:
        subject = f"{app_name}: Document Request Rejected"
        body = (
            f"Your request for a {document_type} has been rejected.\n"
            f"Control number: {control_id}\n"
            f"Date of request: {requested_at or 'N/A'}\n"
            "Please visit the barangay hall for details.\n"
        )
    send_generic_email(to_email, subject, body)


def send_registration_received_email(to_email: str, unique_id: str) -> None:
    """Acknowledge a completed self-registration awaiting admin verification."""
    app_name = _app_name()
    subject = f"{app_name}: Registration received"
    body = (
        f"Thank you for registering.\n\n"
        f"Your resident ID is {unique_id}. Your documents were received and are now "
        f"waiting for verification by the barangay staff.\n"
    )
    send_generic_email(to_email, subject, body)
