"""Utility functions for the application."""

import datetime
import smtplib

from flask import current_app, jsonify, render_template
from flask_mail import Message

from .constants import SMTP_AUTH_ERROR_CODE
from .core.types import APIResponse
from .extensions import mail


class EmailError(Exception):
    """Base class for email errors."""

    pass


def send_email(to, subject, template, **kwargs):
    """Send an email to a recipient.

    Raises:
        EmailError: If sending the email fails.
    """
    msg = Message(
        subject,
        recipients=[to],
        html=render_template(template, **kwargs),
        sender=current_app.config["MAIL_DEFAULT_SENDER"],
    )
    try:
        mail.send(msg)
    except smtplib.SMTPAuthenticationError as e:
        if e.smtp_code == SMTP_AUTH_ERROR_CODE:
            raise EmailError(
                "Authentication failed. The mail provider requires an App Password. "
                "Please verify your MAIL_USERNAME and MAIL_PASSWORD settings."
            ) from e
        raise EmailError(f"SMTP Authentication failed: {e}") from e
    except Exception as e:
        raise EmailError(f"Failed to send email: {e}") from e


def parse_datetime(value):
    """Parse an ISO 8601 date or datetime string into an aware UTC datetime.

    Returns None for empty values. Raises ValueError for malformed input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, datetime.date):
        parsed = datetime.datetime.combine(value, datetime.time.min)
    else:
        parsed = datetime.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def serialize_document(data):
    """Convert Firestore values (timestamps, enums) into JSON-safe values."""
    if isinstance(data, dict):
        return {k: serialize_document(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [serialize_document(v) for v in data]
    if isinstance(data, (datetime.datetime, datetime.date)):
        return data.isoformat()
    if hasattr(data, "value") and hasattr(data, "name") and not isinstance(data, str):
        return data.value
    return data


def first_form_error(form):
    """Return the first validation message of a form as "field: message"."""
    for name, messages in form.errors.items():
        if messages:
            label = getattr(form, name).label.text if hasattr(form, name) else name
            return f"{label}: {messages[0]}"
    return "Invalid request."


def api_response(data=None, message="", status=200, **extra):
    """Build the standard JSON envelope used by every API route."""
    body: APIResponse = {
        "success": True,
        "message": message,
        "data": serialize_document(data),
    }
    payload = {**body, **{k: serialize_document(v) for k, v in extra.items()}}
    return jsonify(payload), status
