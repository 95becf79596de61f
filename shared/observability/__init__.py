from .setup import setup_observability
from .metrics import (
    ecomm_checkout_total,
    ecomm_checkout_duration_seconds,
    ecomm_webhook_notifications_total,
    ecomm_stock_restored_total,
    ecomm_idempotency_replays_total,
)
