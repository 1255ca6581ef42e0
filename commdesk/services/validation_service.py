"""Field validation for everything that reaches the repositories.

Each ``validate_*`` function returns ``None`` when the value is acceptable
and a human-readable reason otherwise.  Nothing here touches the disk.
"""
import logging
import re
from typing import Optional

from ..errors import CommdeskError, VALIDATION
from ..models import PAYMENT_STATUSES, STATUSES

MAX_ID_LENGTH = 64
MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 10000
MAX_EMAIL_LENGTH = 320
MAX_CONTACT_LENGTH = 50
MAX_FILENAME_LENGTH = 255
MAX_PRICE_CENTS = 999_999_999  # $9,999,999.99

ALLOWED_IMAGE_EXTENSIONS = ('jpg', 'jpeg', 'png', 'gif', 'bmp', 'webp')
INLINE_IMAGE_PREFIX = 'data:image/'

_ID_RE = re.compile(r'^[A-Za-z0-9_]+$')
_EMAIL_RE = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

_PATH_HAZARDS = ('..', '/', '\\', '<', '>', '|', ':', '*', '?', '"')
_EMAIL_HAZARDS = ('<', '>', '&', '"', "'", '`')
_CONTACT_HAZARDS = ('<', '>', '&')
_SCRIPT_MARKERS = ('<script', 'javascript:', 'onload=', 'onerror=')
_IMAGE_PATH_HAZARDS = ('\\', '|', '<', '>')

_log = logging.getLogger('commdesk.service.validation')


def _contains_any(value: str, needles) -> bool:
    return any(n in value for n in needles)


def require(reason: Optional[str]) -> None:
    """Raise a validation :class:`CommdeskError` if *reason* is set."""
    if reason is not None:
        raise CommdeskError(reason, VALIDATION)


def validate_id(value: str) -> Optional[str]:
    if not value:
        return "ID cannot be empty"
    if len(value) > MAX_ID_LENGTH:
        return f"ID too long (max {MAX_ID_LENGTH} chars)"
    if not _ID_RE.fullmatch(value):
        return "ID contains invalid characters (only alphanumeric and underscore allowed)"
    return None


def validate_name(value: str, field_name: str) -> Optional[str]:
    """Check a name or title; *field_name* labels the message."""
    if not value:
        return f"{field_name} cannot be empty"
    if len(value) > MAX_NAME_LENGTH:
        return f"{field_name} too long (max {MAX_NAME_LENGTH} chars)"
    if _contains_any(value, _PATH_HAZARDS):
        return f"{field_name} contains invalid characters"
    return None


def validate_email(value: str) -> Optional[str]:
    """Email is optional and doubles as freeform contact text.

    Anything that is not a well-formed address is still accepted unless it
    carries markup characters.
    """
    if not value:
        return None
    if len(value) > MAX_EMAIL_LENGTH:
        return "Email too long"
    if not _EMAIL_RE.fullmatch(value) and _contains_any(value, _EMAIL_HAZARDS):
        return "Email contains invalid characters"
    return None


def validate_contact(value: str) -> Optional[str]:
    if not value:
        return None
    if len(value) > MAX_CONTACT_LENGTH:
        return "Contact too long"
    if _contains_any(value, _CONTACT_HAZARDS):
        return "Contact contains invalid characters"
    return None


def validate_description(value: str) -> Optional[str]:
    """Length cap plus a best-effort screen for script injection."""
    if len(value) > MAX_DESCRIPTION_LENGTH:
        return f"Description too long (max {MAX_DESCRIPTION_LENGTH} chars)"
    if _contains_any(value, _SCRIPT_MARKERS):
        return "Description contains potentially dangerous content"
    return None


def validate_filename(value: str) -> Optional[str]:
    if not value:
        return "Filename cannot be empty"
    if len(value) > MAX_FILENAME_LENGTH:
        return "Filename too long"
    if _contains_any(value, _PATH_HAZARDS):
        return "Filename contains invalid characters"
    if '.' not in value:
        return "Filename must have an extension"
    extension = value.rsplit('.', 1)[1].lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        return "Invalid file extension"
    return None


def validate_status(value: str) -> Optional[str]:
    if value not in STATUSES:
        return "Invalid status value"
    return None


def validate_payment_status(value: str) -> Optional[str]:
    if value not in PAYMENT_STATUSES:
        return "Invalid payment status value"
    return None


def validate_price_cents(value: int) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, int):
        return "Price must be a whole number of cents"
    if value < 0:
        return "Price cannot be negative"
    if value > MAX_PRICE_CENTS:
        return "Price too large"
    return None


def validate_image_path(value: str) -> Optional[str]:
    """Accept inline ``data:image/`` references or paths inside ``images/``."""
    if value.startswith(INLINE_IMAGE_PREFIX):
        _log.debug("Inline image reference accepted")
        return None
    if '..' in value:
        _log.debug("Path traversal detected in %r", value)
        return "Invalid image path detected"
    if '/' in value and not value.startswith('images/'):
        _log.debug("Image path %r is outside images/", value)
        return "Invalid image path detected"
    if _contains_any(value, _IMAGE_PATH_HAZARDS):
        _log.debug("Dangerous characters in image path %r", value)
        return "Invalid image path detected"
    return None


def validate_timestamps(created_at: str, updated_at: str) -> Optional[str]:
    if not created_at or not updated_at:
        return "Timestamps cannot be empty"
    return None
