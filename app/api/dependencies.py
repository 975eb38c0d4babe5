from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.models.principal import Principal
from app.services import token_service
from app.services.errors import (
    InvalidMaterialError,
    NotFoundError,
    ProgressError,
    StateConflictError,
    StorageError,
    ValidationError,
)
from app.services.progress_engine import ProgressEngine, engine_scope

logger = logging.getLogger(__name__)

# Tokens are issued by the identity service; tokenUrl only feeds the docs UI.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and return the caller's Principal."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=str(claims["sub"]),
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s", principal.user_id, principal.roles
    )
    return principal


def require_student(
    principal: Annotated[Principal, Depends(require_user)],
) -> int:
    """Only students record progress; returns the caller's numeric id."""
    student_id = principal.student_id
    if not principal.has_role("student") or student_id is None:
        logger.warning(
            "Progress write denied: user=%s roles=%s", principal.user_id, principal.roles
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only students can record progress",
        )
    return student_id


def require_staff(
    principal: Annotated[Principal, Depends(require_user)],
) -> Principal:
    if not principal.is_staff():
        logger.warning(
            "Staff-only access denied: user=%s roles=%s",
            principal.user_id,
            principal.roles,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return principal


def ensure_can_read(principal: Principal, student_id: int) -> None:
    """Students read their own progress; teachers and admins read anyone's."""
    if principal.is_staff() or principal.student_id == student_id:
        return
    logger.warning(
        "Access denied: user=%s asked for student=%s", principal.user_id, student_id
    )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Insufficient permissions",
    )


async def get_engine() -> AsyncIterator[ProgressEngine]:
    """Request-scoped progress engine; commits when the handler returns."""
    async with engine_scope() as engine:
        yield engine


def to_http_error(e: ProgressError) -> HTTPException:
    """Map a progress-engine error onto its HTTP status."""
    if isinstance(e, ValidationError):
        logger.warning("Validation failed: %s", e)
        return HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    if isinstance(e, InvalidMaterialError):
        logger.warning("Invalid material: %s", e)
        return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, NotFoundError):
        logger.warning("Not found: %s", e)
        return HTTPException(status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, StateConflictError):
        logger.warning("Write conflict not resolved: %s", e)
        return HTTPException(
            status.HTTP_409_CONFLICT, detail="Concurrent update, please retry"
        )
    if isinstance(e, StorageError):
        logger.error("Storage failure: %s", e, exc_info=e)
        return HTTPException(
            status.HTTP_503_SERVICE_UNAVAILABLE, detail="Progress storage unavailable"
        )
    logger.error("Unhandled progress error: %s", e, exc_info=e)
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")
