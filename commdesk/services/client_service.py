"""Business logic for client records."""
from typing import List, Optional

from ..models import Client
from ..repositories.client_repository import ClientRepository
from .validation_service import (
    require, validate_contact, validate_email, validate_id, validate_name,
    validate_timestamps,
)


class ClientService:
    """Validates client operations, delegating persistence to
    :class:`~commdesk.repositories.client_repository.ClientRepository`.

    Rules
    -----
    * ``id`` is 1-64 characters of ``[A-Za-z0-9_]``.
    * ``name`` is required and free of path and markup characters.
    * ``email`` and ``contact`` are optional.
    * Both timestamps are required.
    * Saving an existing id replaces it (upsert semantics).
    """

    def __init__(self, repository: ClientRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_client(self, client: Client) -> str:
        """Validate and save *client*.  Returns the file path written.

        Raises:
            CommdeskError: a field is invalid or the write fails.
        """
        require(validate_id(client.id))
        require(validate_name(client.name, 'Client name'))
        require(validate_email(client.email))
        require(validate_contact(client.contact))
        require(validate_timestamps(client.created_at, client.updated_at))
        return self._repo.save(client)

    def get_client_by_id(self, client_id: str) -> Optional[Client]:
        """Return the client for *client_id*, or ``None``."""
        require(validate_id(client_id))
        return self._repo.find_by_id(client_id)

    def get_all_clients(self) -> List[Client]:
        return self._repo.find_all()

    def delete_client(self, client_id: str) -> bool:
        """Delete the client.  Returns ``True`` if a record was removed."""
        require(validate_id(client_id))
        return self._repo.delete(client_id)
