from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medstore.api.deps import get_actor, get_payment_gateway
from medstore.db import get_db
from medstore.identity import Actor
from medstore.schemas.order_schema import (
    OrderOut,
    PaymentConfirmIn,
    PaymentConfirmOut,
    PaymentInitOut,
)
from medstore.services.payment_service import PaymentService

router = APIRouter(prefix="/api/orders/{order_id}/payment", tags=["payments"])


@router.post("", summary="Start gateway payment", response_model=PaymentInitOut)
def initiate_payment(
    order_id: int,
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
    gateway=Depends(get_payment_gateway),
):
    return PaymentService(db, gateway=gateway).initiate(actor, order_id)


@router.post("/confirm", summary="Payment success callback", response_model=PaymentConfirmOut)
def confirm_payment(
    order_id: int,
    payload: PaymentConfirmIn,
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
    gateway=Depends(get_payment_gateway),
):
    result = PaymentService(db, gateway=gateway).confirm(
        actor,
        order_id,
        payment_id=payload.payment_id,
        gateway_order_id=payload.gateway_order_id,
        signature=payload.signature,
    )
    return PaymentConfirmOut(outcome=result.outcome, order=OrderOut.model_validate(result.order))


@router.post("/cancel", summary="Buyer dismissed the payment", response_model=OrderOut)
def cancel_payment(
    order_id: int,
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
    gateway=Depends(get_payment_gateway),
):
    return PaymentService(db, gateway=gateway).cancel(actor, order_id)
