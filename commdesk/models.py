"""Record types persisted by the repositories.

Both records serialise to flat JSON objects whose keys are the dataclass
field names.  Status strings are stored verbatim ("in-progress" keeps its
hyphen) so older files stay readable.
"""
from __future__ import annotations
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

STATUS_PENDING = 'pending'
STATUS_IN_PROGRESS = 'in-progress'
STATUS_COMPLETED = 'completed'
STATUSES: Tuple[str, ...] = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED)

PAYMENT_STATUSES: Tuple[str, ...] = ('Not Paid', 'Half Paid', 'Fully Paid')

CLIENT_REQUIRED_FIELDS: Tuple[str, ...] = ('id', 'name', 'created_at', 'updated_at')

_ID_ALPHABET = string.ascii_lowercase + string.digits


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a trailing ``Z``."""
    return datetime.now(timezone.utc).isoformat(timespec='microseconds').replace('+00:00', 'Z')


def _new_id(prefix: str) -> str:
    suffix = ''.join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def new_client_id() -> str:
    return _new_id('client')


def new_commission_id() -> str:
    return _new_id('comm')


@dataclass
class Client:
    """A client of the studio.

    Fields:
        id: Opaque token, also the filename stem under ``clients/``.
        name: Display name.
        email: Email address or freeform contact text ("" when unknown).
        contact: Short secondary contact handle ("" when unknown).
        profile_image: Optional image reference.
        notes: Optional freeform notes.
        created_at / updated_at: Non-empty timestamp strings.
    """
    id: str
    name: str
    created_at: str
    updated_at: str
    email: str = ''
    contact: str = ''
    profile_image: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'contact': self.contact,
            'profile_image': self.profile_image,
            'notes': self.notes,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'Client':
        """Build a client from a decoded JSON object.

        Raises:
            KeyError: a required field is missing.
            TypeError: a required field is not a string.
        """
        for key in CLIENT_REQUIRED_FIELDS:
            if key not in raw:
                raise KeyError(key)
            if not isinstance(raw[key], str):
                raise TypeError(f"field '{key}' must be a string")
        return cls(
            id=raw['id'],
            name=raw['name'],
            created_at=raw['created_at'],
            updated_at=raw['updated_at'],
            email=raw.get('email') or '',
            contact=raw.get('contact') or '',
            profile_image=raw.get('profile_image'),
            notes=raw.get('notes'),
        )


@dataclass
class Commission:
    """A piece of commissioned work.

    ``client_name`` is a denormalised copy of the client's name at write time
    and, together with ``status``, decides where the record is stored.
    """
    id: str
    client_id: str
    client_name: str
    title: str
    price_cents: int
    created_at: str
    updated_at: str
    description: str = ''
    payment_status: str = 'Not Paid'
    status: str = STATUS_PENDING
    images: List[str] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'client_id': self.client_id,
            'client_name': self.client_name,
            'title': self.title,
            'description': self.description,
            'price_cents': self.price_cents,
            'payment_status': self.payment_status,
            'status': self.status,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'images': list(self.images),
        }
