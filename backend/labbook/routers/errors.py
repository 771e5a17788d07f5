import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import HTTPException, status
from sqlalchemy.exc import DBAPIError

from ..domain.errors import (
    AccessDeniedError,
    BookingError,
    BusinessRuleViolation,
    ConflictError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STORAGE_UNAVAILABLE = "service temporarily unavailable, please try again"


def to_http(exc: BookingError) -> HTTPException:
    """Translate a domain error into the HTTP error the API reports for it."""
    if isinstance(exc, (ValidationError, BusinessRuleViolation)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, AccessDeniedError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, InfrastructureError):
        logger.error("infrastructure failure: %s", exc)
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=STORAGE_UNAVAILABLE)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")


def storage_failure() -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=STORAGE_UNAVAILABLE)


@asynccontextmanager
async def storage_errors(operation: str) -> AsyncIterator[None]:
    """Report driver failures raised inside the block as 503."""
    try:
        yield
    except DBAPIError as exc:
        logger.exception("%s failed", operation)
        raise storage_failure() from exc
