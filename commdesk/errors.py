"""The single error type raised by commdesk repositories and services."""
from typing import Any, Dict, Optional

VALIDATION = 'validation'
NOT_FOUND = 'not_found'
IO = 'io'
SERIALIZATION = 'serialization'
MOVE = 'move'


class CommdeskError(Exception):
    """Raised for every failure surfaced to a caller.

    ``kind`` is informational (one of the module-level constants) so callers
    can branch on it without a class hierarchy.  ``details`` carries extra
    context such as the file paths left behind by a failed move.
    """

    def __init__(self, message: str, kind: str = IO,
                 details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.details: Dict[str, Any] = dict(details or {})

    def __str__(self) -> str:
        return self.message
