"""
Runtime configuration for the order core, read once from the environment.

A .env file in the working directory is loaded first so local runs don't
need exported variables. Missing gateway credentials are tolerated with a
loud warning (same policy as any other secret here) so that tests and local
development still start.
"""
import os
import warnings

from dotenv import load_dotenv

load_dotenv()

# --- Payment gateway (Midtrans) ---
MIDTRANS_SERVER_KEY: str = os.getenv("MIDTRANS_SERVER_KEY", "")
if not MIDTRANS_SERVER_KEY:
    warnings.warn(
        "MIDTRANS_SERVER_KEY is not set. Webhook signatures will be checked "
        "against an insecure default. Set this env var in production!",
        stacklevel=2,
    )
    MIDTRANS_SERVER_KEY = "insecure-default-change-me"

MIDTRANS_CLIENT_KEY: str = os.getenv("MIDTRANS_CLIENT_KEY", "")
MIDTRANS_IS_PRODUCTION: bool = os.getenv("MIDTRANS_IS_PRODUCTION", "false").lower() == "true"
GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))

# --- Checkout ---
MAX_CART_ITEMS: int = int(os.getenv("MAX_CART_ITEMS", "20"))
CHECKOUT_RATE_LIMIT: str = os.getenv("CHECKOUT_RATE_LIMIT", "10/minute")
ORDER_PAGE_LIMIT_MAX: int = int(os.getenv("ORDER_PAGE_LIMIT_MAX", "50"))

# --- Maintenance sweeps ---
IDEMPOTENCY_RETENTION_HOURS: int = int(os.getenv("IDEMPOTENCY_RETENTION_HOURS", "24"))
UNPAID_ORDER_TTL_MINUTES: int = int(os.getenv("UNPAID_ORDER_TTL_MINUTES", "60"))
MAINTENANCE_INTERVAL_SECONDS: int = int(os.getenv("MAINTENANCE_INTERVAL_SECONDS", "3600"))

# --- Observability ---
OTEL_ENABLED: bool = os.getenv("OTEL_ENABLED", "true").lower() == "true"
OTLP_ENDPOINT: str = os.getenv("OTLP_ENDPOINT", "http://localhost:4317")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
