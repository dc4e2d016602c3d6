import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from medstore.adapters.notifier import LogNotifier
from medstore.adapters.storage import LocalObjectStorage
from medstore.config import settings
from medstore.errors import AlreadyReviewed, InvalidInput, NotFound
from medstore.identity import Actor, require_actor, require_staff
from medstore.models.prescription import (
    APPROVED,
    DECISIONS,
    REJECTED,
    Prescription,
)
from medstore.repositories.prescription_repo import PrescriptionRepository
from medstore.utils.transactions import atomic

log = logging.getLogger(__name__)


def _run_now(fn: Callable, *args):
    fn(*args)


@dataclass
class ReviewMetrics:
    approved_this_week: int
    rejected_this_week: int
    pending_count: int

    @property
    def total_processed(self) -> int:
        return self.approved_this_week + self.rejected_this_week


class ReviewService:
    """
    Pharmacist review of uploaded prescriptions.

    `schedule` decides when the buyer notification runs. By default it runs
    inline after the commit; the API passes BackgroundTasks.add_task so it
    runs after the response is sent. Either way a failing notifier never
    affects the stored decision.
    """

    def __init__(
        self,
        db: Session,
        notifier=None,
        storage: Optional[LocalObjectStorage] = None,
        schedule: Optional[Callable] = None,
    ):
        self.db = db
        self.notifier = notifier or LogNotifier()
        self.storage = storage or LocalObjectStorage()
        self.schedule = schedule or _run_now
        self.repo = PrescriptionRepository(db)

    def review(
        self,
        actor: Optional[Actor],
        prescription_id: int,
        decision: str,
        comments: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Prescription:
        actor = require_staff(actor)
        if decision not in DECISIONS:
            raise InvalidInput(f"Decision must be one of: {', '.join(DECISIONS)}")
        prescription = self.repo.get(prescription_id)
        if not prescription:
            raise NotFound("Prescription not found")
        if not prescription.is_pending:
            raise AlreadyReviewed(f"Prescription was already {prescription.status}")

        values = {
            "status": decision,
            "reviewer_id": actor.user_id,
            "reviewed_at": datetime.now(timezone.utc),
        }
        raw_note = comments if decision == APPROVED else reason
        note = (raw_note or "").strip() or None
        if decision == APPROVED:
            values["approval_comments"] = note
        else:
            values["rejection_reason"] = note

        with atomic(self.db):
            won = self.repo.resolve_pending(prescription.id, values)
        self.db.refresh(prescription)
        if not won:
            raise AlreadyReviewed(f"Prescription was already {prescription.status}")

        log.info("prescription %s %s by %s", prescription.id, decision, actor.user_id)

        payload = {
            "prescription_id": prescription.id,
            "buyer_id": prescription.buyer_id,
            "decision": decision,
            "reviewer_name": actor.display_name,
            "comments": note if decision == APPROVED else None,
            "rejection_reason": note if decision == REJECTED else None,
        }
        self.schedule(self._notify, payload)
        return prescription

    def _notify(self, payload: Dict):
        try:
            self.notifier.send_prescription_update(payload)
        except Exception:
            log.warning(
                "notification for prescription %s failed",
                payload.get("prescription_id"),
                exc_info=True,
            )

    def document_url(self, actor: Optional[Actor], prescription_id: int) -> Dict:
        """Short-lived signed link to the scan, for staff or the uploader."""
        actor = require_actor(actor)
        prescription = self.repo.get(prescription_id)
        if not prescription or (
            prescription.buyer_id != actor.user_id and not actor.is_staff
        ):
            raise NotFound("Prescription not found")
        ttl = settings.SIGNED_URL_TTL_SECONDS
        return {
            "prescription_id": prescription.id,
            "url": self.storage.signed_url(prescription.file_key, expires_in=ttl),
            "expires_in": ttl,
        }

    def list_for_buyer(self, actor: Optional[Actor]) -> List[Prescription]:
        actor = require_actor(actor)
        return self.repo.list_for_buyer(actor.user_id)

    def pending_queue(self, actor: Optional[Actor], limit: int = 100) -> List[Prescription]:
        require_staff(actor)
        return self.repo.list_pending(limit=limit)

    def metrics(self, actor: Optional[Actor], now: Optional[datetime] = None) -> ReviewMetrics:
        require_staff(actor)
        now = now or datetime.now(timezone.utc)
        counts = self.repo.review_counts_since(now - timedelta(days=7))
        return ReviewMetrics(
            approved_this_week=counts[APPROVED],
            rejected_this_week=counts[REJECTED],
            pending_count=self.repo.count_pending(),
        )
