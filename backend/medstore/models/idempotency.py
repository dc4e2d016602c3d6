from datetime import datetime, timezone

from medstore.db import Base
from sqlalchemy import JSON, Column, DateTime, Integer, String


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"
    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(128), unique=True, nullable=False, index=True)
    operation = Column(String(64), nullable=False)
    buyer_id = Column(String(64), nullable=True)
    response_body = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
