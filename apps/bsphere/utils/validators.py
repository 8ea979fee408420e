"""Input validation helpers shared by the route modules.

Every validator either returns the cleaned value or raises
``ValidationError``; routes translate that into a 400 response.
"""
import os
import re
from datetime import date, datetime

from apps.bsphere.utils.time import age_on


class ValidationError(Exception):
    """Raised when request input fails validation."""

    def __init__(self, field, message=None):
        if message is None:
            field, message = None, field
        super().__init__(message)
        self.field = field
        self.message = message

    def __str__(self):
        return self.message


EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PH_MOBILE_RE = re.compile(r'^09\d{9}$')

ALLOWED_IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png'}
ALLOWED_DOCUMENT_EXTENSIONS = {'jpg', 'jpeg', 'png', 'pdf', 'doc', 'docx'}
ALLOWED_SPREADSHEET_EXTENSIONS = {'xlsx'}


def validate_required_fields(data: dict, fields, message: str = None):
    missing = [f for f in fields if data.get(f) in (None, '') or (isinstance(data.get(f), str) and not data.get(f).strip())]
    if missing:
        raise ValidationError(missing[0], message or f"Missing required fields: {', '.join(missing)}")
    return data


def validate_email(email: str) -> str:
    email = (email or '').strip()
    if not email:
        raise ValidationError('email', 'Email is required')
    if not EMAIL_RE.match(email):
        raise ValidationError('email', 'Invalid email format')
    return email


def clean_contact_number(value):
    """Strip whitespace from a contact number; empty becomes None."""
    if value is None:
        return None
    cleaned = re.sub(r'\s+', '', str(value))
    return cleaned or None


def validate_phone(phone: str) -> str:
    phone = clean_contact_number(phone) or ''
    if not PH_MOBILE_RE.match(phone):
        raise ValidationError('phone', 'Phone number must be 11 digits starting with 09')
    return phone


def validate_password(password: str, min_length: int = 6) -> str:
    if not password or len(password) < min_length:
        raise ValidationError('password', f'Password must be at least {min_length} characters long')
    return password


def parse_birthdate(value) -> date:
    """Parse a ``YYYY-MM-DD`` birthdate."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip()[:10], '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError('birthdate', 'Birthdate must be in YYYY-MM-DD format')


def validate_minimum_age(birthdate, minimum: int, label: str = 'You') -> date:
    born = parse_birthdate(birthdate)
    if born > date.today():
        raise ValidationError('birthdate', 'Birthdate cannot be in the future')
    if age_on(born) < minimum:
        raise ValidationError('birthdate', f'{label} must be at least {minimum} years old')
    return born


def validate_file_extension(filename: str, allowed_extensions) -> str:
    _, ext = os.path.splitext(filename or '')
    ext = ext.lower().lstrip('.')
    if not ext or ext not in allowed_extensions:
        raise ValidationError(
            'file',
            f"Invalid file type. Allowed: {', '.join(sorted(allowed_extensions))}"
        )
    return ext


def validate_file_size(size_bytes: int, max_size_mb: int) -> int:
    if size_bytes > max_size_mb * 1024 * 1024:
        raise ValidationError('file', f'File size exceeds {max_size_mb}MB limit')
    return size_bytes


def sanitize_string(value, upper: bool = False, max_length: int = None):
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length:
        text = text[:max_length]
    return text.upper() if upper else text


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in ('1', 'true', 'yes', 'y')
