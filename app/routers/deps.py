"""Shared router dependencies."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.services.errors import (
    BatchInsertError,
    ImportValidationError,
    IngestTimeoutError,
    NotFoundError,
    PaymentRequestError,
    RoyaltyServiceError,
)
from app.services.repository import RoyaltyStore, SqlAlchemyRoyaltyStore


async def verify_admin_token(x_admin_token: Annotated[str, Header()]) -> str:
    """Verify the admin token from header."""
    if x_admin_token != settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
    return x_admin_token


async def get_store(db: Annotated[AsyncSession, Depends(get_db)]) -> RoyaltyStore:
    return SqlAlchemyRoyaltyStore(db)


AdminToken = Annotated[str, Depends(verify_admin_token)]
Store = Annotated[RoyaltyStore, Depends(get_store)]


def status_for(error: RoyaltyServiceError) -> int:
    if isinstance(error, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, (ImportValidationError, PaymentRequestError)):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, IngestTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(error: RoyaltyServiceError, **extra) -> JSONResponse:
    """JSON body keeping the message apart from the details and code."""
    body = {"success": False, **error.to_dict(), **extra}
    if isinstance(error, BatchInsertError):
        body.setdefault("inserted", error.inserted)
    return JSONResponse(status_code=status_for(error), content=body)


def raise_http(error: RoyaltyServiceError) -> None:
    raise HTTPException(status_code=status_for(error), detail=error.to_dict()) from error
