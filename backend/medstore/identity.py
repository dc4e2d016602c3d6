from dataclasses import dataclass
from typing import Optional

from medstore.errors import PermissionDenied, Unauthenticated

BUYER = "buyer"
PHARMACIST = "pharmacist"
ADMIN = "admin"

ROLES = (BUYER, PHARMACIST, ADMIN)
STAFF_ROLES = frozenset([PHARMACIST, ADMIN])


@dataclass(frozen=True)
class Actor:
    """Verified caller identity, supplied per request by the auth proxy."""

    user_id: str
    role: str = BUYER
    name: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def display_name(self) -> str:
        return self.name or ("Pharmacist" if self.is_staff else "Customer")


def require_actor(actor: Optional[Actor]) -> Actor:
    if actor is None or not actor.user_id:
        raise Unauthenticated()
    return actor


def require_staff(actor: Optional[Actor]) -> Actor:
    actor = require_actor(actor)
    if not actor.is_staff:
        raise PermissionDenied("Only pharmacists or admins can do this")
    return actor
