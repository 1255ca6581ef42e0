"""Repository base class used by all concrete repositories."""
import json
import logging
from typing import Any, Dict

from ..errors import CommdeskError, SERIALIZATION
from .file_storage import FileStorage


class BaseRepository:
    """Provides JSON encoding and decoding on top of :class:`FileStorage`.

    Unlike a single-file store, every record is its own file, so nothing is
    cached in memory: each call reads from or writes to disk directly.
    """

    def __init__(self, storage: FileStorage) -> None:
        self._storage = storage
        self._log = logging.getLogger(f'commdesk.repository.{type(self).__name__}')

    @property
    def storage(self) -> FileStorage:
        return self._storage

    @staticmethod
    def _dumps(data: Dict[str, Any]) -> str:
        return json.dumps(data, indent=2, ensure_ascii=False)

    @staticmethod
    def _loads(text: str) -> Dict[str, Any]:
        """Decode *text* as a JSON object.

        Raises:
            CommdeskError: the text is not JSON or not a JSON object.
        """
        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CommdeskError(f"Invalid JSON: {exc}", SERIALIZATION) from exc
        if not isinstance(value, dict):
            raise CommdeskError("Expected a JSON object", SERIALIZATION)
        return value
