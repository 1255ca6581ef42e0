"""Whole-data-directory operations: location, export, import, version."""
import datetime
import logging
import os
import shutil
import tempfile
import zipfile
from typing import Iterable, List, Optional

from .. import __version__
from ..errors import CommdeskError, IO, NOT_FOUND, VALIDATION
from ..repositories.file_storage import FileStorage


def default_import_prefixes() -> List[str]:
    """Locations an import directory may live under."""
    home = os.path.expanduser('~')
    return [
        tempfile.gettempdir(),
        '/tmp',
        '/var/tmp',
        os.path.join(home, 'Downloads'),
        os.path.join(home, 'Documents'),
        os.path.join(home, 'Desktop'),
    ]


def _is_under(path: str, prefix: str) -> bool:
    prefix = os.path.realpath(prefix).rstrip(os.sep) + os.sep
    return (os.path.realpath(path).rstrip(os.sep) + os.sep).startswith(prefix)


class DataService:
    """Operates on the data root as a whole, via
    :class:`~commdesk.repositories.file_storage.FileStorage`.

    Rules
    -----
    * Export writes a zip of the whole data root; the archive must not be
      placed inside the data root itself.
    * Import copies a directory's contents over the data root, overwriting
      files with the same relative path.  The source must be an absolute,
      existing directory under one of the allowed prefixes, and its path
      may not contain ``..`` or ``~``.
    """

    def __init__(self, storage: FileStorage,
                 extra_import_prefixes: Optional[Iterable[str]] = None) -> None:
        self._storage = storage
        self._prefixes = default_import_prefixes() + list(extra_import_prefixes or [])
        self._log = logging.getLogger('commdesk.service.data')

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_data_directory_path(self) -> str:
        return self._storage.data_root

    def get_app_version(self) -> str:
        return __version__

    def export_all_data(self, destination: str) -> str:
        """Write the data root as a zip archive.

        Args:
            destination: Archive path, or an existing directory in which a
                ``commdesk-backup-<date>.zip`` file is created.

        Returns:
            The absolute path of the written archive.

        Raises:
            CommdeskError: the destination is inside the data root or the
                archive cannot be written.
        """
        destination = os.path.abspath(os.path.expanduser(destination))
        if os.path.isdir(destination):
            stamp = datetime.date.today().isoformat()
            destination = os.path.join(destination, f'commdesk-backup-{stamp}.zip')
        if _is_under(os.path.dirname(destination), self._storage.data_root):
            raise CommdeskError("Export destination cannot be inside the data directory",
                                VALIDATION)

        self._storage.ensure_data_folders()
        root = self._storage.data_root
        dir_name = os.path.dirname(destination)
        try:
            os.makedirs(dir_name, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix='.tmp')
        except OSError as exc:
            raise CommdeskError(f"Failed to export data: {exc}", IO) from exc

        count = 0
        try:
            with os.fdopen(fd, 'wb') as fh, \
                    zipfile.ZipFile(fh, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
                for dirpath, dirnames, filenames in os.walk(root):
                    dirnames.sort()
                    for name in sorted(filenames):
                        full = os.path.join(dirpath, name)
                        archive.write(full, os.path.relpath(full, root))
                        count += 1
            os.replace(tmp_path, destination)
        except OSError as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise CommdeskError(f"Failed to export data: {exc}", IO) from exc

        self._log.info("Exported %d file(s) to %s", count, destination)
        return destination

    def import_data(self, import_path: str) -> int:
        """Copy the contents of *import_path* into the data root.

        Returns:
            Number of files copied.

        Raises:
            CommdeskError: the path fails a safety check or the copy fails.
        """
        if not import_path:
            raise CommdeskError("Import path cannot be empty", VALIDATION)
        if '..' in import_path or '~' in import_path:
            raise CommdeskError("Invalid import path - path traversal detected", VALIDATION)
        if not os.path.isabs(import_path):
            raise CommdeskError("Import path must be absolute", VALIDATION)
        if not os.path.exists(import_path):
            raise CommdeskError("Import directory does not exist", NOT_FOUND)
        if not os.path.isdir(import_path):
            raise CommdeskError("Import path must be a directory", VALIDATION)
        if not any(_is_under(import_path, prefix) for prefix in self._prefixes):
            raise CommdeskError("Import path not in allowed location", VALIDATION)

        root = self._storage.data_root
        if _is_under(root, import_path):
            raise CommdeskError("Import path cannot contain the data directory", VALIDATION)
        count = 0
        try:
            for dirpath, _, filenames in os.walk(import_path):
                target_dir = os.path.join(root, os.path.relpath(dirpath, import_path))
                os.makedirs(target_dir, exist_ok=True)
                for name in filenames:
                    shutil.copy2(os.path.join(dirpath, name), os.path.join(target_dir, name))
                    count += 1
        except OSError as exc:
            raise CommdeskError(f"Failed to import data: {exc}", IO) from exc

        self._storage.ensure_data_folders()
        self._log.info("Imported %d file(s) from %s", count, import_path)
        return count
