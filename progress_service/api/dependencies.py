from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from progress_service.db.engine import async_session_factory, session_scope
from progress_service.models.principal import Principal
from progress_service.repos.stores import MEMORY_STORES, Stores, pg_stores
from progress_service.services import token_service
from progress_service.services.certificates import CertificateService
from progress_service.services.dashboard import DashboardService
from progress_service.services.lab_grading import LabGradingService
from progress_service.services.progress import ProgressService

logger = logging.getLogger(__name__)

# Tokens come from the upstream auth service; tokenUrl only feeds the docs UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and return the caller's Principal."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError:
        logger.warning("Token subject is not a user id: %r", claims["sub"])
        raise _unauthorized("Invalid token") from None

    principal = Principal(
        user_id=user_id,
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        principal.roles,
    )
    return principal


def require_any_role(roles: set[str] | frozenset[str]):
    """Dependency factory: demand at least one of the given token roles.

    Usage: Depends(require_any_role({"admin", "instructor"}))

    This is a cheap route gate.  Privileged writes are re-checked by the
    services against the user store.
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(frozenset(roles)):
            logger.warning(
                "Access denied: user=%s has none of roles=%s",
                principal.user_id,
                sorted(roles),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


# ---------------------------------------------------------------------------
# Stores and services
# ---------------------------------------------------------------------------


async def get_stores() -> AsyncGenerator[Stores, None]:
    """One unit of work per request.

    Postgres: a session that commits when the handler returns and rolls
    back if it raises.  Without DATABASE_URL: the shared in-memory stores.
    """
    if async_session_factory is None:
        yield MEMORY_STORES
        return
    async with session_scope() as session:
        yield pg_stores(session)


StoresDep = Annotated[Stores, Depends(get_stores)]


def get_progress_service(stores: StoresDep) -> ProgressService:
    return ProgressService(stores)


def get_certificate_service(stores: StoresDep) -> CertificateService:
    return CertificateService(stores)


def get_lab_grading_service(stores: StoresDep) -> LabGradingService:
    return LabGradingService(stores)


def get_dashboard_service(stores: StoresDep) -> DashboardService:
    return DashboardService(stores)
