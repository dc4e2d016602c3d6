import logging
from typing import Optional

from sqlalchemy.orm import Session

from medstore.models.idempotency import IdempotencyRecord

log = logging.getLogger(__name__)


class IdempotencyRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[IdempotencyRecord]:
        return (
            self.db.query(IdempotencyRecord)
            .filter(IdempotencyRecord.key == key)
            .first()
        )

    def record(
        self, key: str, operation: str, buyer_id: str, response_body: dict
    ) -> IdempotencyRecord:
        """
        Stage the completed response for `key` in the caller's transaction.

        The unique constraint on `key` is what rejects a concurrent duplicate:
        the second writer gets an IntegrityError at flush/commit and rolls back
        its whole unit of work.
        """
        rec = IdempotencyRecord(
            key=key,
            operation=operation,
            buyer_id=buyer_id,
            response_body=response_body,
        )
        self.db.add(rec)
        self.db.flush()
        log.debug("record(): key=%r operation=%s", key, operation)
        return rec
