"""
Request principals.

Identity is issued by the external auth service; this module only trusts
what a valid JWT says (`sub` -> user id, `role` -> role) and never any
identity claim carried in a request body.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from .jwt_handler import verify_access_token

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


class Role(str, Enum):
    USER = "USER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: Role


def principal_from_token(token: str | None) -> Principal | None:
    if not token:
        return None
    payload = verify_access_token(token)
    if payload is None or payload.get("sub") is None:
        return None
    try:
        role = Role(payload.get("role", Role.USER.value))
    except ValueError:
        return None
    return Principal(user_id=str(payload["sub"]), role=role)


def principal_from_request(request: Request) -> Principal | None:
    """Reads the bearer token straight off the headers, for code running outside dependency injection."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return principal_from_token(auth_header.split(" ", 1)[1])
    return None


async def get_current_principal(request: Request, token: str = Depends(oauth2_scheme)) -> Principal:
    """Dependency to validate the JWT and return the authenticated principal."""
    principal = principal_from_token(token)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Store in request state for downstream use (like rate limiting)
    request.state.user_id = principal.user_id
    return principal


def require_role(principal: Principal, roles: Iterable[Role]) -> None:
    """Capability check run at the top of privileged handlers."""
    if principal.role not in set(roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient role for this operation",
        )
