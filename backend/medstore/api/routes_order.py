from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, UploadFile, status
from sqlalchemy.orm import Session

from medstore.api.deps import get_actor, get_storage
from medstore.config import settings
from medstore.db import get_db
from medstore.identity import Actor
from medstore.schemas.order_schema import OrderOut
from medstore.services.order_service import OrderService, PrescriptionUpload

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _read_upload(upload: Optional[UploadFile]) -> Optional[PrescriptionUpload]:
    if upload is None or not upload.filename:
        return None
    # one byte past the limit is enough for validation to reject it
    data = upload.file.read(settings.MAX_PRESCRIPTION_BYTES + 1)
    return PrescriptionUpload(
        filename=upload.filename,
        content_type=upload.content_type or "",
        data=data,
    )


@router.post(
    "",
    summary="Create order (checkout)",
    response_model=OrderOut,
    status_code=status.HTTP_201_CREATED,
)
def checkout(
    delivery_address: str = Form(""),
    payment_method: str = Form("cod"),
    prescription: Optional[UploadFile] = File(None),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
):
    svc = OrderService(db, storage=storage)
    return svc.checkout(
        actor,
        delivery_address,
        payment_method,
        prescription_document=_read_upload(prescription),
        idempotency_key=idempotency_key,
    )


@router.get("", summary="List my orders", response_model=List[OrderOut])
def list_orders(actor: Optional[Actor] = Depends(get_actor), db: Session = Depends(get_db)):
    return OrderService(db).list_orders(actor)


@router.get("/{order_id}", summary="Get order", response_model=OrderOut)
def get_order(
    order_id: int, actor: Optional[Actor] = Depends(get_actor), db: Session = Depends(get_db)
):
    return OrderService(db).get_order(actor, order_id)
