from typing import Optional

from fastapi import Header

from medstore.adapters.mock_payment import MockPaymentGateway
from medstore.adapters.notifier import build_notifier
from medstore.adapters.storage import LocalObjectStorage
from medstore.config import settings
from medstore.identity import BUYER, ROLES, Actor


def get_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
) -> Optional[Actor]:
    """
    Identity as verified by the upstream auth proxy. An unknown role is
    treated as a plain buyer; a missing id yields None and the service
    raises Unauthenticated.
    """
    if not x_user_id:
        return None
    role = (x_user_role or BUYER).lower()
    if role not in ROLES:
        role = BUYER
    return Actor(user_id=x_user_id, role=role, name=x_user_name)


def get_storage() -> LocalObjectStorage:
    return LocalObjectStorage()


def get_notifier():
    return build_notifier()


def get_payment_gateway() -> MockPaymentGateway:
    return MockPaymentGateway(delay_ms=settings.PAYMENT_MOCK_DELAY_MS)
