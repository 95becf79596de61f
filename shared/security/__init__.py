from .jwt_handler import issue_token, verify_access_token
from .dependencies import (
    Principal,
    Role,
    get_current_principal,
    principal_from_request,
    require_role,
)
from .rate_limiter import limiter, user_id_or_ip

__all__ = [
    "issue_token",
    "verify_access_token",
    "Principal",
    "Role",
    "get_current_principal",
    "principal_from_request",
    "require_role",
    "limiter",
    "user_id_or_ip"
]
