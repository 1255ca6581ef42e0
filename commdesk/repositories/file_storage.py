"""File-system primitives shared by every repository.

Nothing here validates input: callers hand in ids and names that already
passed :mod:`commdesk.services.validation_service`, and anything that becomes
a path segment goes through :meth:`FileStorage.sanitize_filename` or
:meth:`FileStorage.sanitize_timestamp` first.
"""
import logging
import os
import tempfile
from typing import List, Tuple

from ..errors import CommdeskError, IO, SERIALIZATION

CLIENTS_FOLDER = 'clients'
PENDINGS_FOLDER = 'pendings'
HISTORY_FOLDER = 'history'
DATA_FOLDERS = (CLIENTS_FOLDER, PENDINGS_FOLDER, HISTORY_FOLDER)

_HAZARD_CHARS = ('/', '\\', ':', '*', '?', '"', '<', '>', '|')


class FileStorage:
    """Owns the data root and performs all reads and writes beneath it.

    The root is resolved once by :func:`commdesk.config.load_settings` and
    passed in here; repositories receive this object rather than a path.

    Writes use a write-then-rename strategy so a record file is never left
    half-written.
    """

    def __init__(self, data_root: str) -> None:
        self.data_root = os.path.abspath(data_root)
        self._log = logging.getLogger('commdesk.repository.FileStorage')

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def path(self, *parts: str) -> str:
        return os.path.join(self.data_root, *parts)

    def ensure_data_folders(self) -> None:
        """Create ``clients/``, ``pendings/`` and ``history/`` if missing."""
        for folder in DATA_FOLDERS:
            try:
                os.makedirs(self.path(folder), exist_ok=True)
            except OSError as exc:
                raise CommdeskError(f"Failed to create {folder} folder: {exc}", IO) from exc

    def list_subdirectories(self, directory: str) -> List[str]:
        """Return the immediate sub-directories of *directory*, sorted by name.

        A missing directory yields an empty list.
        """
        if not os.path.isdir(directory):
            return []
        try:
            names = sorted(os.listdir(directory))
        except OSError as exc:
            raise CommdeskError(f"Failed to read directory: {exc}", IO) from exc
        return [os.path.join(directory, n) for n in names
                if os.path.isdir(os.path.join(directory, n))]

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_directory_json_files(self, directory: str) -> List[Tuple[str, str]]:
        """Return ``(path, text)`` for every ``*.json`` file in *directory*.

        Non-JSON entries and sub-directories are skipped.  A directory that
        does not exist is not an error; it simply has no records.  A file
        that cannot be read or decoded is logged and skipped.
        """
        results: List[Tuple[str, str]] = []
        if not os.path.isdir(directory):
            return results
        try:
            names = sorted(os.listdir(directory))
        except OSError as exc:
            raise CommdeskError(f"Failed to read directory: {exc}", IO) from exc
        for name in names:
            file_path = os.path.join(directory, name)
            if not name.endswith('.json') or not os.path.isfile(file_path):
                continue
            try:
                text = self.read_text(file_path)
            except CommdeskError as exc:
                self._log.warning("Skipping unreadable file %s: %s", file_path, exc)
                continue
            results.append((file_path, text))
        return results

    @staticmethod
    def exists(file_path: str) -> bool:
        return os.path.isfile(file_path)

    def read_text(self, file_path: str) -> str:
        try:
            with open(file_path, 'r', encoding='utf-8') as fh:
                return fh.read()
        except UnicodeDecodeError as exc:
            raise CommdeskError(f"File is not valid UTF-8: {file_path}", SERIALIZATION,
                                {"path": file_path}) from exc
        except OSError as exc:
            raise CommdeskError(f"Failed to read file: {exc}", IO) from exc

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def write_json_file(self, file_path: str, content: str) -> None:
        """Write *content* to *file_path*, creating parent directories."""
        self._write(file_path, content.encode('utf-8'))

    def write_bytes_file(self, file_path: str, data: bytes) -> None:
        """Write raw *data* to *file_path*, creating parent directories."""
        self._write(file_path, bytes(data))

    def _write(self, file_path: str, payload: bytes) -> None:
        dir_name = os.path.dirname(os.path.abspath(file_path))
        try:
            os.makedirs(dir_name, exist_ok=True)
        except OSError as exc:
            raise CommdeskError(f"Failed to create directory: {exc}", IO) from exc

        try:
            fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix='.tmp')
        except OSError as exc:
            raise CommdeskError(f"Failed to write file: {exc}", IO) from exc
        try:
            with os.fdopen(fd, 'wb') as fh:
                fh.write(payload)
            os.replace(tmp_path, file_path)
        except OSError as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise CommdeskError(f"Failed to write file: {exc}", IO) from exc
        self._log.debug("Wrote %s (%d bytes)", file_path, len(payload))

    def delete_file(self, file_path: str) -> bool:
        """Remove *file_path*.  Returns ``True`` if a file was removed.

        A file that is already gone counts as success.
        """
        if not os.path.exists(file_path):
            return False
        try:
            os.remove(file_path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise CommdeskError(f"Failed to delete file: {exc}", IO) from exc
        self._log.debug("Deleted %s", file_path)
        return True

    # ------------------------------------------------------------------
    # Path-segment sanitising
    # ------------------------------------------------------------------

    @staticmethod
    def sanitize_filename(name: str) -> str:
        """Replace file-system hazard characters in *name* with ``_``."""
        for ch in _HAZARD_CHARS:
            name = name.replace(ch, '_')
        return name

    @staticmethod
    def sanitize_timestamp(timestamp: str) -> str:
        """Replace file-system hazard characters in *timestamp* with ``-``."""
        for ch in _HAZARD_CHARS:
            timestamp = timestamp.replace(ch, '-')
        return timestamp
