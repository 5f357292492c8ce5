"""Request dependencies: bearer-token authentication and report access."""
import logging
from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import get_settings
from ..permissions import Action, Actor, ResourceKind, authorize

logger = logging.getLogger("backoffice-core.auth")

# Security scheme for OpenAPI docs
security = HTTPBearer(auto_error=False)


def actor_from_claims(claims: dict) -> Actor:
    """
    Build an Actor from decoded token claims.

    Accepts ``userId`` or ``sub`` for the subject and either a ``roles``
    list or a single ``role`` string.

    Raises:
        ValueError: If the subject is missing or not a UUID
    """
    subject = claims.get("userId") or claims.get("sub")
    if not subject:
        raise ValueError("Token has no subject")

    roles = claims.get("roles")
    if roles is None:
        roles = [claims["role"]] if claims.get("role") else []
    elif isinstance(roles, str):
        roles = [roles]
    return Actor(user_id=UUID(str(subject)), roles=[str(r) for r in roles])


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """
    Dependency that authenticates the caller from a bearer JWT.

    Raises:
        HTTPException: 401 when no token is sent, 403 when it cannot be verified
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    settings = get_settings()
    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
        return actor_from_claims(claims)
    except (jwt.PyJWTError, ValueError) as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise HTTPException(status_code=403, detail="Invalid or expired token") from e


def require_report_access(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency that lets only Admin and Manager through to reports."""
    authorize(actor, Action.VIEW_REPORTS, ResourceKind.REPORT)
    return actor
