from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text
from shared.config.database import Base


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_keys"

    id = Column(Integer, primary_key=True, index=True)
    # The unique index is what settles two requests racing on the same key
    key = Column(String(255), unique=True, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    method = Column(String(16), nullable=False)
    path = Column(String, nullable=False)
    response = Column(Text, nullable=False)
    status_code = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
