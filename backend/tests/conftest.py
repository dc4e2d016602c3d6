import os
import tempfile

# settings are read at import time, so point them at a throwaway location
# before anything from medstore is imported
_TMP = tempfile.mkdtemp(prefix="medstore-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["STORAGE_DIR"] = os.path.join(_TMP, "storage")
os.environ["PENDING_PAYMENT_TTL_SECONDS"] = "3600"
os.environ["DECREMENT_STOCK_ON_CHECKOUT"] = "false"
os.environ["PAYMENT_VERIFY_SIGNATURE"] = "true"

import pytest
from fastapi.testclient import TestClient

from medstore.adapters.mock_payment import MockPaymentGateway
from medstore.adapters.notifier import LogNotifier
from medstore.adapters.storage import LocalObjectStorage
from medstore.api.deps import get_notifier, get_payment_gateway, get_storage
from medstore.db import Base, SessionLocal, engine, init_db
from medstore.identity import ADMIN, PHARMACIST, Actor
from medstore.main import app
from medstore.models.product import Product

PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << >>\n%%EOF\n"


@pytest.fixture(autouse=True, scope="session")
def setup_db():
    init_db(reset=True)
    yield


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(price_cents=100, requires_prescription=False, stock=10, active=True, name=None):
        counter["n"] += 1
        p = Product(
            sku=f"SKU-{counter['n']}",
            name=name or f"Medicine {counter['n']}",
            price_cents=price_cents,
            stock=stock,
            requires_prescription=requires_prescription,
            active=active,
        )
        db.add(p)
        db.commit()
        db.refresh(p)
        return p

    return _make


@pytest.fixture
def buyer():
    return Actor(user_id="buyer-1")


@pytest.fixture
def other_buyer():
    return Actor(user_id="buyer-2")


@pytest.fixture
def pharmacist():
    return Actor(user_id="pharm-1", role=PHARMACIST, name="Dr. Rao")


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=ADMIN)


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(
        root=str(tmp_path / "objects"),
        secret="test-secret",
        base_url="http://testserver",
    )


@pytest.fixture
def gateway():
    return MockPaymentGateway(key_id="rzp_test", key_secret="gw-secret")


@pytest.fixture
def notifier():
    return LogNotifier()


@pytest.fixture
def client(storage, gateway, notifier):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def headers_for(actor: Actor) -> dict:
    h = {"X-User-Id": actor.user_id, "X-User-Role": actor.role}
    if actor.name:
        h["X-User-Name"] = actor.name
    return h
