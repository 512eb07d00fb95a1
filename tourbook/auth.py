import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from fastapi_limiter.depends import RateLimiter
from jose import JWTError, jwt
from pydantic import ValidationError

from . import schemas
from .abuse_tracker import SuspiciousActivityTracker, get_activity_tracker
from .config import settings
from .models import UserRole

logger = logging.getLogger("tourbook.security")

api_key_header = APIKeyHeader(name="Authorization")


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """
    Tries to get the user ID from the JWT token.
    If it fails (no token, invalid token), it falls back to the client's IP.
    """
    try:
        token = request.headers.get("Authorization")
        scheme, jwt_token = token.split()
        if scheme.lower() != "bearer":
            return _client_ip(request)

        payload = jwt.decode(jwt_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = payload.get("sub")

        if user_id:
            return str(user_id)
    except (JWTError, ValueError, AttributeError, TypeError):
        # If token is invalid, missing, or malformed, limit by IP
        pass
    return _client_ip(request)


def decode_actor(token: str) -> schemas.Actor:
    """Parses 'Bearer <jwt>' into the caller's id and role."""
    scheme, jwt_token = token.split()
    if scheme.lower() != "bearer":
        raise ValueError("Unsupported authorization scheme")
    payload = jwt.decode(jwt_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    return schemas.Actor(id=int(payload.get("sub")), role=payload.get("role"))


def get_current_actor(
        request: Request,
        token: Annotated[str, Depends(api_key_header)],
        tracker: Annotated[SuspiciousActivityTracker, Depends(get_activity_tracker)],
) -> schemas.Actor:
    try:
        return decode_actor(token)
    except (JWTError, ValueError, TypeError, AttributeError, ValidationError):
        logger.warning(f"[SECURITY] Unauthorized access attempt from IP: {_client_ip(request)} to {request.url.path}")
        tracker.track(None, _client_ip(request))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_role(*roles: UserRole):
    """Dependency factory: the authenticated actor must hold one of ``roles``."""

    def dependency(
            request: Request,
            actor: Annotated[schemas.Actor, Depends(get_current_actor)],
            tracker: Annotated[SuspiciousActivityTracker, Depends(get_activity_tracker)],
    ) -> schemas.Actor:
        if actor.role not in roles:
            logger.warning(
                f"[SECURITY] Role mismatch: {actor.role.value} (User ID: {actor.id}) tried to access "
                f"{request.url.path} (required: {' or '.join(r.value for r in roles)})"
            )
            tracker.track(actor.id, _client_ip(request))
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return actor

    return dependency


get_current_user = require_role(UserRole.USER)
get_current_tour_guide = require_role(UserRole.TOUR_GUIDE)
get_current_admin = require_role(UserRole.ADMIN)

write_limiter = RateLimiter(times=30, minutes=1, identifier=get_key_by_user_id_or_ip)
read_limiter = RateLimiter(times=60, minutes=1, identifier=get_key_by_user_id_or_ip)
