from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from medstore.api.deps import get_actor, get_notifier, get_storage
from medstore.db import get_db
from medstore.identity import Actor
from medstore.schemas.order_schema import OrderOut, StatusUpdateIn
from medstore.schemas.prescription_schema import (
    PrescriptionOut,
    ReviewIn,
    ReviewMetricsOut,
)
from medstore.services.fulfilment_service import FulfilmentService
from medstore.services.review_service import ReviewService

router = APIRouter(prefix="/api/staff", tags=["staff"])


@router.get("/prescriptions", summary="Pending prescriptions", response_model=List[PrescriptionOut])
def pending_prescriptions(
    limit: int = Query(100, ge=1, le=500),
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return ReviewService(db).pending_queue(actor, limit=limit)


@router.post(
    "/prescriptions/{prescription_id}/review",
    summary="Approve or reject a prescription",
    response_model=PrescriptionOut,
)
def review_prescription(
    prescription_id: int,
    payload: ReviewIn,
    background_tasks: BackgroundTasks,
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    svc = ReviewService(db, notifier=notifier, schedule=background_tasks.add_task)
    return svc.review(
        actor,
        prescription_id,
        payload.decision,
        comments=payload.comments,
        reason=payload.reason,
    )


@router.get("/prescriptions/{prescription_id}/document", summary="Signed link to a prescription")
def prescription_document(
    prescription_id: int,
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
):
    return ReviewService(db, storage=storage).document_url(actor, prescription_id)


@router.get("/orders", summary="Orders not yet delivered", response_model=List[OrderOut])
def open_orders(
    limit: int = Query(100, ge=1, le=500),
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return FulfilmentService(db).list_open_orders(actor, limit=limit)


@router.post("/orders/{order_id}/status", summary="Advance order status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: StatusUpdateIn,
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return FulfilmentService(db).transition(actor, order_id, payload.status)


@router.get("/metrics", summary="Review metrics for the last 7 days", response_model=ReviewMetricsOut)
def review_metrics(actor: Optional[Actor] = Depends(get_actor), db: Session = Depends(get_db)):
    m = ReviewService(db).metrics(actor)
    return ReviewMetricsOut(
        approved_this_week=m.approved_this_week,
        rejected_this_week=m.rejected_this_week,
        pending_count=m.pending_count,
        total_processed=m.total_processed,
    )
