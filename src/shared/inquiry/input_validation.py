"""
Inquiry validation and sanitization.

All problems in a submission are collected and reported together, keyed by
the form field name, so the client can highlight every bad field at once.
"""

import html
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Mapping, Optional

from email_validator import validate_email, EmailNotValidError

from src.shared.errors import ValidationError

MAX_AVAILABILITY_DAYS = 60

# Wire name -> (label, max length)
REQUIRED_FIELDS = {
    "placement": ("Placement", 200),
    "size": ("Size", 50),
    "desc": ("Description", 2000),
    "firstName": ("First name", 100),
    "lastName": ("Last name", 100),
    "email": ("Email", 255),
}
MAX_PHONE_DIGITS = 20

# Accepts 3x5, 3"x5", 3.5 X 5 in, 3 x 5 inches
SIZE_PATTERN = re.compile(
    r'^(\d{1,3}(?:\.\d{1,2})?)\s*(?:"|in(?:ch(?:es)?)?)?\s*[xX×]\s*'
    r'(\d{1,3}(?:\.\d{1,2})?)\s*(?:"|in(?:ch(?:es)?)?)?$'
)

INVALID_DATE_FORMAT = "Invalid date format."
INVALID_DATE_RANGE = "Invalid date range."


@dataclass(frozen=True)
class CleanInquiry:
    """A submission that passed validation. Free text is HTML-escaped."""
    first_name: str
    last_name: str
    email: str
    phone: Optional[str]
    placement: str
    size: str
    description: str
    date_from: date
    date_to: date

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def sanitize_text(text: str) -> str:
    """Escape &, < and > so the text cannot inject markup into emails."""
    return html.escape(text, quote=False)


def normalize_phone(phone: str) -> Optional[str]:
    """Keep digits only. Format rules are left to the client."""
    digits = re.sub(r'\D', '', phone)
    return digits or None


def normalize_size(size: str) -> Optional[str]:
    """Return the canonical ``WxH in`` token, or None if unparsable."""
    match = SIZE_PATTERN.match(size)
    if not match:
        return None
    width, height = match.groups()
    return f"{width}x{height} in"


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def validate_inquiry(raw: Mapping[str, Optional[str]], today: Optional[date] = None) -> CleanInquiry:
    """
    Validate a raw submission.

    Args:
        raw: Form fields keyed by wire name (placement, size, desc, firstName,
            lastName, email, phone, dateFrom, dateTo)
        today: Reference date for the "not in the past" rule

    Returns:
        CleanInquiry with trimmed, sanitized and normalized values

    Raises:
        ValidationError with every field error found
    """
    today = today or date.today()
    errors: Dict[str, str] = {}

    # Trim
    fields = {key: (value or "").strip() for key, value in raw.items()}

    # Required fields
    missing = [name for name in REQUIRED_FIELDS if not fields.get(name)]
    for name in missing:
        errors[name] = f"{REQUIRED_FIELDS[name][0]} is required."

    for name, (label, max_length) in REQUIRED_FIELDS.items():
        value = fields.get(name)
        if value and len(value) > max_length:
            errors[name] = f"{label} must be no more than {max_length} characters."

    # Email format
    email = fields.get("email", "")
    if email and "email" not in errors:
        try:
            email = validate_email(email, check_deliverability=False).normalized
        except EmailNotValidError:
            errors["email"] = "Enter a valid email."

    # Phone is optional free text
    phone = normalize_phone(fields.get("phone", ""))
    if phone and len(phone) > MAX_PHONE_DIGITS:
        errors["phone"] = "Enter a valid phone number."

    size = fields.get("size", "")
    if size and "size" not in errors:
        normalized = normalize_size(size)
        if normalized is None:
            errors["size"] = 'Size must look like WxH in inches, e.g. 3x5.'
        else:
            size = normalized

    # Dates
    date_from = _parse_date(fields.get("dateFrom", ""))
    date_to = _parse_date(fields.get("dateTo", ""))
    if date_from is None:
        errors["dateFrom"] = INVALID_DATE_FORMAT
    if date_to is None:
        errors["dateTo"] = INVALID_DATE_FORMAT
    if date_from is not None and date_to is not None:
        if date_from < today:
            errors["dateFrom"] = INVALID_DATE_RANGE
        if date_to < date_from or date_to - date_from > timedelta(days=MAX_AVAILABILITY_DAYS):
            errors["dateTo"] = INVALID_DATE_RANGE

    if errors:
        message = None
        if missing:
            message = "Missing required fields."
        elif set(errors) <= {"dateFrom", "dateTo"}:
            message = INVALID_DATE_FORMAT if INVALID_DATE_FORMAT in errors.values() else INVALID_DATE_RANGE
        raise ValidationError(errors, message=message)

    # Free text is escaped, not rejected
    return CleanInquiry(
        first_name=sanitize_text(fields["firstName"]),
        last_name=sanitize_text(fields["lastName"]),
        email=email,
        phone=phone,
        placement=sanitize_text(fields["placement"]),
        size=sanitize_text(size),
        description=sanitize_text(fields["desc"]),
        date_from=date_from,
        date_to=date_to,
    )
