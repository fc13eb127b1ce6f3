"""
ShopError → HTTP.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from kungfu import Result, Ok, Error

from storefront.errors import (
    EmptyCart,
    Forbidden,
    InsufficientStock,
    NotFound,
    PaymentDeclined,
    ShopError,
    Unauthorized,
    ValidationError,
)
from storefront.web.schemas import ErrorOut

logger = logging.getLogger(__name__)


def status_for(error: ShopError) -> int:
    match error:
        case NotFound():
            return 404
        case Forbidden():
            return 403
        case Unauthorized():
            return 401
        case ValidationError():
            return 422
        case EmptyCart() | InsufficientStock():
            return 409
        case PaymentDeclined():
            return 402
        case _:
            return 500


def expect[T](result: Result[T, ShopError]) -> T:
    """Value of an ``Ok``; the error of an ``Error`` is raised for the handler below."""
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise e


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=code,
        content=ErrorOut(error=exc.code, message=exc.message).model_dump(),
    )


__all__ = ("status_for", "expect", "shop_error_handler")
