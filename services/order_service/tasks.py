"""
Periodic housekeeping, run in-process by the root app.

- Idempotency records older than the retention window are purged.
- PENDING orders that never obtained a payment session are released after
  UNPAID_ORDER_TTL_MINUTES so their reserved stock isn't held forever.
  Orders that do have a session are left to the gateway's own expiry
  notification.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import structlog

from shared.config import settings
from shared.config.database import AsyncSessionLocal
from shared.idempotency import IdempotencyRepository

from .service import OrderService

logger = structlog.get_logger(__name__)


async def purge_idempotency_keys() -> int:
    cutoff = datetime.now(timezone.utc) - timedelta(hours=settings.IDEMPOTENCY_RETENTION_HOURS)
    async with AsyncSessionLocal() as db:
        purged = await IdempotencyRepository.purge_before(db, cutoff)
    logger.info("idempotency_keys_purged", count=purged)
    return purged


async def release_unpaid_orders() -> int:
    async with AsyncSessionLocal() as db:
        released = await OrderService.release_unpaid_orders(
            db, timedelta(minutes=settings.UNPAID_ORDER_TTL_MINUTES)
        )
    logger.info("unpaid_orders_released", count=released)
    return released


async def run_maintenance() -> None:
    for sweep in (purge_idempotency_keys, release_unpaid_orders):
        try:
            await sweep()
        except Exception:
            # One failed sweep must not stop the others or the loop
            logger.exception("maintenance_sweep_failed", sweep=sweep.__name__)


async def maintenance_loop(interval_seconds: int) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        await run_maintenance()
