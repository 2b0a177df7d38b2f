import re
from typing import Any, Dict, List, Optional, Tuple

from .errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+]?[1-9]\d{0,15}$")
PHONE_SEPARATORS_RE = re.compile(r"[\s\-()]")


def _present(v: Any) -> bool:
    return v is not None and v != ""


def _phone_as_str(v: Any) -> Optional[str]:
    # JSON clients often send phone numbers as bare integers
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return str(v)
    if isinstance(v, str):
        return v
    return None


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def is_valid_phone_number(phone_number: str) -> bool:
    return bool(PHONE_RE.match(PHONE_SEPARATORS_RE.sub("", phone_number)))


def validate_identify_request(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []
    email = data.get("email")
    phone = data.get("phoneNumber")

    if not _present(email) and not _present(phone):
        errors.append("At least one of email or phoneNumber must be provided")
        return errors

    if _present(email):
        if not isinstance(email, str):
            errors.append("Field 'email' must be a string")
        elif not is_valid_email(email):
            errors.append("Invalid email format")

    if _present(phone):
        phone_str = _phone_as_str(phone)
        if phone_str is None:
            errors.append("Field 'phoneNumber' must be a string or integer")
        elif not is_valid_phone_number(phone_str):
            errors.append("Invalid phone number format")

    return errors


def parse_identify_request(data: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """
    Validate a request body and return (email, phone_number).

    Raises:
        ValidationError: With every message from validate_identify_request
    """
    errors = validate_identify_request(data)
    if errors:
        raise ValidationError(errors)

    email = data.get("email") or None
    phone = data.get("phoneNumber")
    phone_number = _phone_as_str(phone) if _present(phone) else None
    return email, phone_number
