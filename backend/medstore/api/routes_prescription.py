from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medstore.api.deps import get_actor, get_storage
from medstore.db import get_db
from medstore.identity import Actor
from medstore.schemas.prescription_schema import PrescriptionOut
from medstore.services.review_service import ReviewService

router = APIRouter(prefix="/api/prescriptions", tags=["prescriptions"])


@router.get("", summary="List my prescriptions", response_model=List[PrescriptionOut])
def list_prescriptions(
    actor: Optional[Actor] = Depends(get_actor), db: Session = Depends(get_db)
):
    return ReviewService(db).list_for_buyer(actor)


@router.get("/{prescription_id}/document", summary="Signed link to my prescription")
def my_document(
    prescription_id: int,
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
):
    return ReviewService(db, storage=storage).document_url(actor, prescription_id)
