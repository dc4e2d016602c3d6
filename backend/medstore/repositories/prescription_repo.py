from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from medstore.models.prescription import (
    APPROVED,
    PENDING,
    REJECTED,
    Prescription,
)


class PrescriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, prescription_id: int) -> Optional[Prescription]:
        return (
            self.db.query(Prescription)
            .filter(Prescription.id == prescription_id)
            .first()
        )

    def create(
        self,
        buyer_id: str,
        file_key: str,
        content_type: Optional[str] = None,
        original_filename: Optional[str] = None,
    ) -> Prescription:
        p = Prescription(
            buyer_id=buyer_id,
            file_key=file_key,
            content_type=content_type,
            original_filename=original_filename,
            status=PENDING,
        )
        self.db.add(p)
        self.db.flush()
        return p

    def resolve_pending(self, prescription_id: int, values: Dict) -> bool:
        """
        Apply a review decision only if the row is still pending.

        The status guard lives in the UPDATE itself so that of two reviewers
        racing on the same row exactly one sees rowcount == 1.
        """
        updated = (
            self.db.query(Prescription)
            .filter(Prescription.id == prescription_id, Prescription.status == PENDING)
            .update(values, synchronize_session=False)
        )
        self.db.flush()
        return updated == 1

    def list_for_buyer(self, buyer_id: str) -> List[Prescription]:
        return (
            self.db.query(Prescription)
            .filter(Prescription.buyer_id == buyer_id)
            .order_by(Prescription.created_at.desc(), Prescription.id.desc())
            .all()
        )

    def list_pending(self, limit: int = 100) -> List[Prescription]:
        return (
            self.db.query(Prescription)
            .filter(Prescription.status == PENDING)
            .order_by(Prescription.created_at.desc(), Prescription.id.desc())
            .limit(limit)
            .all()
        )

    def review_counts_since(self, since: datetime) -> Dict[str, int]:
        rows = (
            self.db.query(Prescription.status, func.count(Prescription.id))
            .filter(
                Prescription.status.in_([APPROVED, REJECTED]),
                Prescription.reviewed_at >= since,
            )
            .group_by(Prescription.status)
            .all()
        )
        counts = {APPROVED: 0, REJECTED: 0}
        counts.update({status: n for status, n in rows})
        return counts

    def count_pending(self) -> int:
        return (
            self.db.query(func.count(Prescription.id))
            .filter(Prescription.status == PENDING)
            .scalar()
            or 0
        )
