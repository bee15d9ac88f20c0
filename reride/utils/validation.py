# reride/utils/validation.py
"""Field-level validators shared by the record schemas and the backend."""

import re

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[6-9]\d{9}$")      # Indian mobile, country code stripped


def validate_email(email: str) -> bool:
    return bool(email) and EMAIL_RE.match(email) is not None


def validate_phone(phone: str) -> bool:
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    return PHONE_RE.match(digits) is not None


def normalize_email(email: str) -> str:
    """Emails are compared case-insensitively everywhere."""
    return (email or "").strip().lower()
