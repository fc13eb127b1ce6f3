"""
Application factory.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from storefront.checkout import FakeGateway, PaymentGateway
from storefront.config import Settings, get_settings
from storefront.db import create_database
from storefront.errors import ShopError
from storefront.web._errors import shop_error_handler
from storefront.web._routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    app.state.database = await create_database(
        settings.database_url,
        echo=settings.database_echo,
        busy_timeout=settings.database_busy_timeout,
    )
    try:
        yield
    finally:
        await app.state.database.dispose()


def create_app(
    settings: Settings | None = None,
    *,
    gateway: PaymentGateway | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    if settings.session_secret == "change-me":
        logger.warning("Using the default session secret, set STOREFRONT_SESSION_SECRET")

    app = FastAPI(title="storefront", lifespan=_lifespan)
    app.state.settings = settings
    app.state.gateway = gateway if gateway is not None else FakeGateway()

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.session_max_age,
    )
    app.add_exception_handler(ShopError, shop_error_handler)
    app.include_router(router)
    return app


__all__ = ("create_app",)
