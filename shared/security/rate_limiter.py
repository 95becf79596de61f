from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from .dependencies import principal_from_request

def user_id_or_ip(request: Request) -> str:
    """
    Key function for SlowAPI.
    Buckets authenticated callers by user id so one customer can't starve
    checkout for everyone behind the same NAT; anonymous traffic
    (e.g. the gateway webhook) falls back to the client IP.
    """
    principal = principal_from_request(request)
    if principal is not None:
        return f"user:{principal.user_id}"

    # Fallback to IP address (handles proxies if X-Forwarded-For is set correctly by Uvicorn)
    return f"ip:{get_remote_address(request)}"

# Initialize the Limiter with our custom key function
limiter = Limiter(key_func=user_id_or_ip)
