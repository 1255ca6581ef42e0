"""Business logic for commission records."""
import logging
from dataclasses import replace
from typing import Dict, List

from ..models import Commission
from ..repositories.commission_repository import CommissionRepository
from .validation_service import (
    require, validate_description, validate_id, validate_image_path,
    validate_name, validate_payment_status, validate_price_cents,
    validate_status, validate_timestamps,
)


class CommissionService:
    """Validates commission operations, delegating persistence to
    :class:`~commdesk.repositories.commission_repository.CommissionRepository`.

    Rules
    -----
    * ``id`` and ``client_id`` follow the id rules.
    * ``client_name`` and ``title`` follow the name rules.
    * ``price_cents`` is a non-negative integer up to $9,999,999.99.
    * ``status`` and ``payment_status`` are one of their fixed values.
    * Empty entries in ``images`` are dropped; every other entry must be an
      inline ``data:image/`` reference or a path inside ``images/``.
    """

    def __init__(self, repository: CommissionRepository) -> None:
        self._repo = repository
        self._log = logging.getLogger('commdesk.service.commission')

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_commission(self, commission: Commission) -> Commission:
        """Validate and save *commission*.

        Returns:
            The record as stored (with empty image entries removed).

        Raises:
            CommdeskError: a field is invalid or the write fails.
        """
        require(validate_id(commission.id))
        require(validate_id(commission.client_id))
        require(validate_name(commission.client_name, 'Client name'))
        require(validate_name(commission.title, 'Commission title'))
        require(validate_description(commission.description))
        require(validate_price_cents(commission.price_cents))
        require(validate_payment_status(commission.payment_status))
        require(validate_status(commission.status))
        require(validate_timestamps(commission.created_at, commission.updated_at))

        images = [path for path in commission.images if path]
        for image_path in images:
            require(validate_image_path(image_path))

        stored = replace(commission, images=images)
        self._repo.save(stored)
        self._log.debug("Created commission %s with %d image(s)", stored.id, len(images))
        return stored

    def get_commissions_by_status(self, status: str) -> List[Commission]:
        require(validate_status(status))
        return self._repo.find_by_status(status)

    def move_commission(self, commission_id: str, from_status: str,
                        to_status: str) -> Commission:
        """Move a commission between statuses.  Returns the updated record."""
        require(validate_id(commission_id))
        require(validate_status(from_status))
        require(validate_status(to_status))
        self._log.info("Moving commission %s from %s to %s",
                       commission_id, from_status, to_status)
        return self._repo.move_commission(commission_id, from_status, to_status)

    def delete_commission(self, commission_id: str, status: str) -> str:
        """Delete a commission.  Returns the path that was removed."""
        require(validate_id(commission_id))
        require(validate_status(status))
        return self._repo.delete_by_id_and_status(commission_id, status)

    def find_duplicates(self) -> Dict[str, List[str]]:
        """Report ids stored in more than one file across both root folders."""
        return self._repo.find_duplicates()
