"""Repository for client records (one ``clients/{id}.json`` file per client)."""
from typing import List, Optional

from ..errors import CommdeskError, SERIALIZATION
from ..models import Client
from .base import BaseRepository
from .file_storage import CLIENTS_FOLDER


class ClientRepository(BaseRepository):
    """Persists :class:`~commdesk.models.Client` records.

    Schema (``clients/<id>.json``)::

        {
            "id":            "<str>",
            "name":          "<str>",
            "email":         "<str, may be empty>",
            "contact":       "<str, may be empty>",
            "profile_image": "<str>" | null,
            "notes":         "<str>" | null,
            "created_at":    "<timestamp>",
            "updated_at":    "<timestamp>"
        }

    The id doubles as the filename stem, so a second save for the same id
    overwrites the first.
    """

    def _client_path(self, client_id: str) -> str:
        return self._storage.path(CLIENTS_FOLDER, f"{client_id}.json")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def save(self, client: Client) -> str:
        """Insert or replace *client*.  Returns the file path written."""
        self._storage.ensure_data_folders()
        path = self._client_path(client.id)
        self._storage.write_json_file(path, self._dumps(client.to_dict()))
        self._log.info("Saved client %s", client.id)
        return path

    def find_by_id(self, client_id: str) -> Optional[Client]:
        """Return the client stored under *client_id*, or ``None``."""
        path = self._client_path(client_id)
        if not self._storage.exists(path):
            return None
        return self._parse(self._storage.read_text(path))

    def find_all(self) -> List[Client]:
        """Return every readable client; unreadable files are logged and skipped."""
        self._storage.ensure_data_folders()
        clients: List[Client] = []
        for path, text in self._storage.read_directory_json_files(
                self._storage.path(CLIENTS_FOLDER)):
            try:
                clients.append(self._parse(text))
            except CommdeskError as exc:
                self._log.warning("Failed to parse client %s: %s", path, exc)
        return clients

    def delete(self, client_id: str) -> bool:
        """Remove the client file.  Returns ``True`` if it existed."""
        removed = self._storage.delete_file(self._client_path(client_id))
        if removed:
            self._log.info("Deleted client %s", client_id)
        return removed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parse(self, text: str) -> Client:
        raw = self._loads(text)
        try:
            return Client.from_dict(raw)
        except KeyError as exc:
            raise CommdeskError(
                f"Failed to deserialize client: missing field {exc}", SERIALIZATION) from exc
        except TypeError as exc:
            raise CommdeskError(
                f"Failed to deserialize client: {exc}", SERIALIZATION) from exc
