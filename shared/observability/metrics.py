from prometheus_client import Counter, Histogram

# Business Metrics
ecomm_checkout_total = Counter(
    "ecomm_checkout_total", 
    "Total checkouts processed", 
    ["status"] # Labels: 'success', 'cart_empty', 'insufficient_stock', 'payment_session_failed', ...
)

ecomm_checkout_duration_seconds = Histogram(
    "ecomm_checkout_duration_seconds", 
    "Checkout duration in seconds"
)

ecomm_webhook_notifications_total = Counter(
    "ecomm_webhook_notifications_total",
    "Gateway notifications received",
    ["outcome"] # Labels: 'ok', 'ignored', 'invalid_signature', 'amount_mismatch', ...
)

ecomm_stock_restored_total = Counter(
    "ecomm_stock_restored_total",
    "Order reservations released back to stock",
    ["reason"] # Labels: 'user_cancel', 'admin_cancel', 'gateway', 'amount_mismatch', 'expired'
)

ecomm_idempotency_replays_total = Counter(
    "ecomm_idempotency_replays_total",
    "Mutating requests answered from a stored idempotent response"
)
