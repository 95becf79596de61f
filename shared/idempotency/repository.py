from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import IdempotencyRecord


class IdempotencyRepository:

    @staticmethod
    async def get_by_key(db: AsyncSession, key: str) -> Optional[IdempotencyRecord]:
        result = await db.execute(select(IdempotencyRecord).where(IdempotencyRecord.key == key))
        return result.scalars().first()

    @staticmethod
    async def create(db: AsyncSession, record: IdempotencyRecord) -> bool:
        """Inserts the record. False if another request already stored this key; its row is left untouched."""
        db.add(record)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            return False
        return True

    @staticmethod
    async def purge_before(db: AsyncSession, cutoff: datetime) -> int:
        result = await db.execute(delete(IdempotencyRecord).where(IdempotencyRecord.created_at < cutoff))
        await db.commit()
        return result.rowcount
