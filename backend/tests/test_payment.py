from datetime import datetime, timedelta, timezone

import pytest

from conftest import headers_for
from medstore.adapters.mock_payment import MockPaymentGateway
from medstore.config import settings
from medstore.db import SessionLocal
from medstore.errors import InvalidInput, NotFound, StateConflict, UpstreamFailure
from medstore.models.order import Order
from medstore.services.cart_service import CartService
from medstore.services.order_service import OrderService
from medstore.services.payment_service import ALREADY_PAID, SETTLED, PaymentService


@pytest.fixture
def place_order(db, make_product, storage):
    def _place(actor, method="card", price_cents=500, qty=1):
        CartService(db).add(actor, make_product(price_cents=price_cents).id, qty=qty)
        return OrderService(db, storage=storage).checkout(actor, "addr", method)

    return _place


def test_gateway_payment_settles_and_clears_cart(db, buyer, gateway, place_order):
    order = place_order(buyer, price_cents=500, qty=2)
    svc = PaymentService(db, gateway=gateway)

    init = svc.initiate(buyer, order.id)
    assert init["amount_cents"] == 1000
    assert init["currency"] == settings.CURRENCY
    gw_id = init["gateway_order_id"]

    result = svc.confirm(buyer, order.id, "pay_1", gw_id, gateway.sign(gw_id, "pay_1"))
    assert result.outcome == SETTLED
    assert result.order.payment_status == "paid"
    assert result.order.gateway_payment_id == "pay_1"
    assert result.order.paid_at is not None
    assert result.order.status == "pending"
    assert CartService(db).snapshot(buyer).is_empty


def _pay(svc, gateway, actor, order_id, payment_id):
    gw_id = svc.initiate(actor, order_id)["gateway_order_id"]
    return svc.confirm(actor, order_id, payment_id, gw_id, gateway.sign(gw_id, payment_id))


def test_callback_without_initiate_is_refused(db, buyer, gateway, place_order):
    order = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    with pytest.raises(StateConflict):
        svc.confirm(buyer, order.id, "pay_1", "gw_1", gateway.sign("gw_1", "pay_1"))
    stored = svc.order_repo.get(order.id)
    assert stored.payment_status == "pending"
    assert stored.gateway_order_id is None
    assert not CartService(db).snapshot(buyer).is_empty


def test_payment_for_one_order_cannot_settle_another(db, buyer, gateway, place_order):
    cheap = place_order(buyer, price_cents=100)
    pricey = place_order(buyer, price_cents=999900)
    svc = PaymentService(db, gateway=gateway)
    gw_cheap = svc.initiate(buyer, cheap.id)["gateway_order_id"]
    sig = gateway.sign(gw_cheap, "pay_cheap")

    # pricey never went through initiate
    with pytest.raises(StateConflict):
        svc.confirm(buyer, pricey.id, "pay_cheap", gw_cheap, sig)

    # and once it has its own gateway order, the cheap one still doesn't fit
    svc.initiate(buyer, pricey.id)
    with pytest.raises(StateConflict):
        svc.confirm(buyer, pricey.id, "pay_cheap", gw_cheap, sig)

    assert svc.order_repo.get(pricey.id).payment_status == "pending"
    assert svc.confirm(buyer, cheap.id, "pay_cheap", gw_cheap, sig).outcome == SETTLED


def test_payment_id_settles_only_one_order(db, buyer, gateway, place_order, monkeypatch):
    monkeypatch.setattr(settings, "PAYMENT_VERIFY_SIGNATURE", False)
    first = place_order(buyer)
    second = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    _pay(svc, gateway, buyer, first.id, "pay_1")

    gw_second = svc.initiate(buyer, second.id)["gateway_order_id"]
    with pytest.raises(StateConflict):
        svc.confirm(buyer, second.id, "pay_1", gw_second)
    assert svc.order_repo.get(second.id).payment_status == "pending"


def test_expiry_racing_a_callback_wins(db, buyer, gateway, place_order):
    order = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    gw_id = svc.initiate(buyer, order.id)["gateway_order_id"]

    # the expiry job commits from its own session right after confirm has read the order
    load = svc.order_repo.get

    def load_then_expire(order_id):
        found = load(order_id)
        other = SessionLocal()
        try:
            other.query(Order).filter(Order.id == order_id).update({"status": "cancelled"})
            other.commit()
        finally:
            other.close()
        return found

    svc.order_repo.get = load_then_expire
    with pytest.raises(StateConflict):
        svc.confirm(buyer, order.id, "pay_1", gw_id, gateway.sign(gw_id, "pay_1"))

    svc.order_repo.get = load
    stored = svc.order_repo.get(order.id)
    assert (stored.status, stored.payment_status) == ("cancelled", "pending")
    assert not CartService(db).snapshot(buyer).is_empty


def test_replayed_callback_is_a_noop(db, make_product, buyer, gateway, place_order):
    order = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    gw_id = svc.initiate(buyer, order.id)["gateway_order_id"]
    sig = gateway.sign(gw_id, "pay_1")
    svc.confirm(buyer, order.id, "pay_1", gw_id, sig)
    paid_at = svc.order_repo.get(order.id).paid_at

    # something new lands in the cart after payment; a replay must not clear it
    CartService(db).add(buyer, make_product().id)
    replay = svc.confirm(buyer, order.id, "pay_1", gw_id, sig)
    other = svc.confirm(buyer, order.id, "pay_2", gw_id, gateway.sign(gw_id, "pay_2"))

    assert replay.outcome == ALREADY_PAID
    assert other.outcome == ALREADY_PAID
    assert other.order.gateway_payment_id == "pay_1"
    assert other.order.paid_at == paid_at
    assert not CartService(db).snapshot(buyer).is_empty


def test_bad_signature_is_rejected(db, buyer, gateway, place_order):
    order = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    gw_id = svc.initiate(buyer, order.id)["gateway_order_id"]
    with pytest.raises(InvalidInput, match="verified"):
        svc.confirm(buyer, order.id, "pay_1", gw_id, "forged")
    assert svc.order_repo.get(order.id).payment_status == "pending"


def test_signature_check_can_be_disabled(db, buyer, gateway, place_order, monkeypatch):
    monkeypatch.setattr(settings, "PAYMENT_VERIFY_SIGNATURE", False)
    order = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    gw_id = svc.initiate(buyer, order.id)["gateway_order_id"]
    result = svc.confirm(buyer, order.id, "pay_1", gw_id)
    assert result.outcome == SETTLED


def test_callback_must_match_gateway_order(db, buyer, gateway, place_order):
    order = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    svc.initiate(buyer, order.id)
    with pytest.raises(StateConflict):
        svc.confirm(buyer, order.id, "pay_1", "gw_other", gateway.sign("gw_other", "pay_1"))


def test_callback_for_unknown_or_foreign_order(db, buyer, other_buyer, gateway, place_order):
    order = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    sig = gateway.sign("gw_1", "pay_1")
    with pytest.raises(NotFound):
        svc.confirm(buyer, 424242, "pay_1", "gw_1", sig)
    with pytest.raises(NotFound):
        svc.confirm(other_buyer, order.id, "pay_1", "gw_1", sig)
    assert svc.order_repo.get(order.id).payment_status == "pending"


def test_cod_orders_do_not_take_gateway_callbacks(db, buyer, gateway, place_order):
    order = place_order(buyer, method="cod")
    svc = PaymentService(db, gateway=gateway)
    with pytest.raises(InvalidInput):
        svc.initiate(buyer, order.id)
    with pytest.raises(InvalidInput):
        svc.confirm(buyer, order.id, "pay_1", "gw_1", gateway.sign("gw_1", "pay_1"))


def test_initiate_reuses_gateway_order(db, buyer, gateway, place_order):
    order = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    assert svc.initiate(buyer, order.id)["gateway_order_id"] == svc.initiate(buyer, order.id)["gateway_order_id"]


def test_gateway_outage_is_upstream_failure(db, buyer, place_order):
    order = place_order(buyer)
    svc = PaymentService(db, gateway=MockPaymentGateway(fail=True))
    with pytest.raises(UpstreamFailure):
        svc.initiate(buyer, order.id)
    assert svc.order_repo.get(order.id).gateway_order_id is None


def test_dismissed_payment_leaves_order_pending(db, buyer, gateway, place_order):
    order = place_order(buyer)
    svc = PaymentService(db, gateway=gateway)
    svc.initiate(buyer, order.id)

    kept = svc.cancel(buyer, order.id)
    assert kept.status == "pending"
    assert kept.payment_status == "pending"
    assert not CartService(db).snapshot(buyer).is_empty

    # and it can still be paid later
    gw_id = kept.gateway_order_id
    assert svc.confirm(buyer, order.id, "pay_9", gw_id, gateway.sign(gw_id, "pay_9")).outcome == SETTLED


def test_expire_stale_cancels_only_unpaid_gateway_orders(db, buyer, other_buyer, gateway, place_order):
    unpaid = place_order(buyer)
    cod = place_order(other_buyer, method="cod")
    paid = place_order(other_buyer, method="upi")
    svc = PaymentService(db, gateway=gateway)
    _pay(svc, gateway, other_buyer, paid.id, "pay_1")

    assert svc.expire_stale() == []

    later = datetime.now(timezone.utc) + timedelta(seconds=settings.PENDING_PAYMENT_TTL_SECONDS + 60)
    assert svc.expire_stale(now=later) == [unpaid.id]
    assert svc.order_repo.get(unpaid.id).status == "cancelled"
    assert svc.order_repo.get(cod.id).status == "pending"
    assert svc.order_repo.get(paid.id).status == "pending"

    with pytest.raises(StateConflict):
        svc.confirm(buyer, unpaid.id, "pay_2", "gw_2", gateway.sign("gw_2", "pay_2"))


def test_expiry_disabled_with_zero_ttl(db, buyer, gateway, place_order, monkeypatch):
    place_order(buyer)
    monkeypatch.setattr(settings, "PENDING_PAYMENT_TTL_SECONDS", 0)
    far = datetime.now(timezone.utc) + timedelta(days=365)
    assert PaymentService(db, gateway=gateway).expire_stale(now=far) == []


def test_payment_api_flow(client, make_product, buyer, gateway):
    h = headers_for(buyer)
    client.post("/api/cart/items", json={"product_id": make_product(price_cents=700).id}, headers=h)
    order = client.post(
        "/api/orders", data={"delivery_address": "addr", "payment_method": "wallet"}, headers=h
    ).json()

    init = client.post(f"/api/orders/{order['id']}/payment", headers=h).json()
    gw_id = init["gateway_order_id"]
    assert init["key_id"] == "rzp_test"

    cancelled = client.post(f"/api/orders/{order['id']}/payment/cancel", headers=h).json()
    assert cancelled["payment_status"] == "pending"
    assert len(client.get("/api/cart", headers=h).json()["items"]) == 1

    callback = {"payment_id": "pay_1", "gateway_order_id": gw_id, "signature": gateway.sign(gw_id, "pay_1")}
    res = client.post(f"/api/orders/{order['id']}/payment/confirm", json=callback, headers=h)
    assert res.status_code == 200
    assert res.json()["outcome"] == "settled"
    assert res.json()["order"]["payment_status"] == "paid"
    assert client.get("/api/cart", headers=h).json()["items"] == []

    res = client.post(f"/api/orders/{order['id']}/payment/confirm", json=callback, headers=h)
    assert res.json()["outcome"] == "already_paid"

    res = client.post("/api/orders/99999/payment/confirm", json=callback, headers=h)
    assert res.status_code == 404
