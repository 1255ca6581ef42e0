"""Repository for commission records.

Layout::

    pendings/<client>/<id>_<created_at>.json   status "pending" / "in-progress"
    history/<client>/<id>_<created_at>.json    status "completed"

``<client>`` is the sanitised ``client_name`` and ``<created_at>`` the
sanitised creation timestamp, so a record keeps its file name for life and
only changes directory when it crosses into or out of ``history/``.
"""
import math
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import CommdeskError, MOVE, NOT_FOUND, SERIALIZATION
from ..models import Commission, STATUS_COMPLETED, now_iso
from .base import BaseRepository
from .file_storage import HISTORY_FOLDER, PENDINGS_FOLDER

CANONICAL_SCHEMA = 'canonical'
LEGACY_V1_SCHEMA = 'legacy-v1'


# ---------------------------------------------------------------------------
# Schema variants
# ---------------------------------------------------------------------------

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _canonical_price(raw: Dict[str, Any]) -> Optional[int]:
    """Current files: integer ``price_cents``."""
    value = raw.get('price_cents')
    return value if _is_int(value) else None


def _legacy_v1_price(raw: Dict[str, Any]) -> Optional[int]:
    """Older files: float ``price`` in dollars, converted to whole cents."""
    value = raw.get('price')
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return _round_half_away(value * 100)


# Tried in order; the first variant that recognises the document wins.
SCHEMA_VARIANTS: Tuple[Tuple[str, Callable[[Dict[str, Any]], Optional[int]]], ...] = (
    (CANONICAL_SCHEMA, _canonical_price),
    (LEGACY_V1_SCHEMA, _legacy_v1_price),
)


def _text(raw: Dict[str, Any], key: str, default: str = '') -> str:
    value = raw.get(key)
    return value if isinstance(value, str) else default


def decode_commission(raw: Dict[str, Any]) -> Tuple[str, Commission]:
    """Decode a JSON object into ``(schema_tag, Commission)``.

    Fields other than the price fall back to defaults when absent so that
    partial records from older versions still load.

    Raises:
        CommdeskError: no schema variant recognises the price fields.
    """
    for tag, read_price in SCHEMA_VARIANTS:
        price_cents = read_price(raw)
        if price_cents is None:
            continue
        images = raw.get('images')
        commission = Commission(
            id=_text(raw, 'id'),
            client_id=_text(raw, 'client_id'),
            client_name=_text(raw, 'client_name'),
            title=_text(raw, 'title'),
            description=_text(raw, 'description'),
            price_cents=price_cents,
            payment_status=_text(raw, 'payment_status', 'Not Paid'),
            status=_text(raw, 'status', 'pending'),
            created_at=_text(raw, 'created_at'),
            updated_at=_text(raw, 'updated_at'),
            images=[x for x in images if isinstance(x, str)] if isinstance(images, list) else [],
        )
        return tag, commission
    raise CommdeskError("Missing price or price_cents", SERIALIZATION)


def parse_commission(text: str) -> Commission:
    """Parse the JSON *text* of a commission file."""
    return decode_commission(BaseRepository._loads(text))[1]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class CommissionRepository(BaseRepository):
    """Persists :class:`~commdesk.models.Commission` records, one file each.

    Every write replaces the whole file.  The repository does not guard
    against reusing an id with a different ``created_at``; that produces a
    second file, which :meth:`find_duplicates` reports.
    """

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    @staticmethod
    def root_folder(status: str) -> str:
        """Return ``history`` for completed work, ``pendings`` otherwise."""
        return HISTORY_FOLDER if status == STATUS_COMPLETED else PENDINGS_FOLDER

    def path_for(self, commission: Commission) -> str:
        """Return the file path *commission* is stored at."""
        client_dir = self._storage.sanitize_filename(commission.client_name)
        stamp = self._storage.sanitize_timestamp(commission.created_at)
        return self._storage.path(
            self.root_folder(commission.status), client_dir,
            f"{commission.id}_{stamp}.json")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def save(self, commission: Commission) -> str:
        """Write *commission* to its derived path.  Returns that path."""
        self._storage.ensure_data_folders()
        path = self.path_for(commission)
        self._storage.write_json_file(path, self._dumps(commission.to_dict()))
        self._log.info("Saved commission %s to %s", commission.id, path)
        return path

    def find_by_status(self, status: str) -> List[Commission]:
        """Return every readable commission under *status*'s root folder."""
        self._storage.ensure_data_folders()
        return [c for _, c in self._scan(self.root_folder(status))]

    def find_with_path(self, commission_id: str, status: str) -> Tuple[str, Commission]:
        """Return ``(path, commission)`` for the exact id under *status*'s root.

        Raises:
            CommdeskError: no stored commission has that id.
        """
        for path, commission in self._scan(self.root_folder(status)):
            if commission.id == commission_id:
                return path, commission
        raise CommdeskError(
            f"Commission {commission_id} not found in {status} folder", NOT_FOUND)

    def move_commission(self, commission_id: str, from_status: str,
                        to_status: str) -> Commission:
        """Change the status of a stored commission and relocate its file.

        The updated record is written to its new path first, read back to
        confirm it landed, and only then is the old file removed.  The old
        file is the one matched by exact id, never by file-name prefix.  When
        old and new paths coincide (pending <-> in-progress) nothing is
        deleted.

        Raises:
            CommdeskError: ``kind == "not_found"`` if the id is not under
                *from_status*; ``kind == "move"`` if a later step fails, with
                ``details`` naming the ``step``, ``staged_path`` and
                ``source_path`` so the leftover state can be repaired.
        """
        source_path, commission = self.find_with_path(commission_id, from_status)

        commission.status = to_status
        commission.updated_at = now_iso()
        staged_path = self.path_for(commission)
        details = {'staged_path': staged_path, 'source_path': source_path}

        try:
            self.save(commission)
        except CommdeskError as exc:
            raise CommdeskError(
                f"Move of {commission_id} failed while writing {staged_path}: {exc}. "
                f"Original left at {source_path}",
                MOVE, dict(details, step='stage')) from exc

        try:
            staged = parse_commission(self._storage.read_text(staged_path))
        except CommdeskError as exc:
            raise CommdeskError(
                f"Move of {commission_id} could not verify {staged_path}: {exc}. "
                f"Original left at {source_path}",
                MOVE, dict(details, step='verify')) from exc
        if staged.id != commission_id or staged.status != to_status:
            raise CommdeskError(
                f"Move of {commission_id} could not verify {staged_path}: "
                f"read back id={staged.id!r} status={staged.status!r}. "
                f"Original left at {source_path}",
                MOVE, dict(details, step='verify'))

        if os.path.abspath(staged_path) != os.path.abspath(source_path):
            try:
                self._storage.delete_file(source_path)
            except CommdeskError as exc:
                raise CommdeskError(
                    f"Move of {commission_id} wrote {staged_path} but could not remove "
                    f"{source_path}: {exc}",
                    MOVE, dict(details, step='cleanup')) from exc

        self._log.info("Moved commission %s from %s to %s", commission_id,
                       from_status, to_status)
        return commission

    def delete_by_id_and_status(self, commission_id: str, status: str) -> str:
        """Delete the first file under *status*'s root whose record id matches.

        Returns the deleted path.

        Raises:
            CommdeskError: no stored commission has that id.
        """
        for path, commission in self._scan(self.root_folder(status)):
            if commission.id == commission_id:
                self._storage.delete_file(path)
                self._log.info("Deleted commission %s (%s)", commission_id, path)
                return path
        raise CommdeskError("Commission not found", NOT_FOUND)

    def find_duplicates(self) -> Dict[str, List[str]]:
        """Return ``{id: [paths]}`` for ids stored in more than one file.

        Covers both root folders, so a move interrupted after staging shows
        up here with its staged and original copies.
        """
        seen: Dict[str, List[str]] = {}
        for folder in (PENDINGS_FOLDER, HISTORY_FOLDER):
            for path, commission in self._scan(folder):
                seen.setdefault(commission.id, []).append(path)
        return {cid: paths for cid, paths in seen.items() if len(paths) > 1}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _scan(self, folder: str) -> List[Tuple[str, Commission]]:
        """Parse every record in every client sub-folder of *folder*."""
        found: List[Tuple[str, Commission]] = []
        for client_dir in self._storage.list_subdirectories(self._storage.path(folder)):
            for path, text in self._storage.read_directory_json_files(client_dir):
                try:
                    tag, commission = decode_commission(self._loads(text))
                except CommdeskError as exc:
                    self._log.warning("Failed to parse commission %s: %s", path, exc)
                    continue
                if tag == LEGACY_V1_SCHEMA:
                    self._log.debug("Read legacy price from %s", path)
                found.append((path, commission))
        return found
