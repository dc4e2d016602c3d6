from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from medstore.db import Base

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

DECISIONS = (APPROVED, REJECTED)


class Prescription(Base):
    __tablename__ = "prescriptions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    buyer_id = Column(String(64), nullable=False, index=True)
    file_key = Column(String(512), nullable=False)
    content_type = Column(String(64), nullable=True)
    original_filename = Column(String(255), nullable=True)
    status = Column(
        String(16), nullable=False, default=PENDING, index=True
    )  # pending, approved, rejected
    reviewer_id = Column(String(64), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    approval_comments = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def is_pending(self) -> bool:
        return self.status == PENDING
