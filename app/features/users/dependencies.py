"""
FastAPI dependencies for authentication.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.features.permissions.catalog import Role
from app.features.users.auth import verify_jwt_token
from app.features.users.schemas import Actor
from app.utils import get_logger


log = get_logger(__name__)
security = HTTPBearer()


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Actor:
    """
    Get the current actor from the bearer token.

    Unknown role values in the token are ignored rather than rejected, so a
    token minted before a role was retired still authenticates.

    Usage:
        @router.get("/me")
        async def get_me(actor: Actor = Depends(get_current_actor)):
            return actor
    """
    payload = verify_jwt_token(credentials.credentials)
    member_id = payload.get("sub")

    if not member_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    roles = []
    for value in payload.get("roles") or []:
        try:
            roles.append(Role(value))
        except ValueError:
            log.warning(f"Ignoring unknown role {value!r} for member {member_id}")

    return Actor(id=str(member_id), roles=roles)


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
