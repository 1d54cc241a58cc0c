"""
Keygate application factory.

Author: Keygate Team
Date: 2026-10-06
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from prometheus_client import CollectorRegistry
from starlette.middleware.sessions import SessionMiddleware

from . import __version__
from .core.config_manager import KeygateConfig
from .error_handlers import register_exception_handlers
from .health import HealthCheck
from .health import create_router as create_health_router
from .metrics import KeygateMetrics
from .middleware import RequestIDMiddleware
from .oauth.routes import create_router as create_oauth_router
from .oauth.secrets import Clock, SecretFactory
from .oauth.service import OAuthService
from .store.backend import RecordStore
from .store.factory import create_record_store
from .web.routes import create_router as create_web_router
from .web.routes import register_web_handlers

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[KeygateConfig] = None,
    store: Optional[RecordStore] = None,
    secret_factory: Optional[SecretFactory] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build the Keygate FastAPI application.

    Args:
        config: Validated configuration (defaults if None)
        store: Record store to use instead of the configured one
        secret_factory: Token and id generator (cryptographic if None)
        clock: UTC clock (wall clock if None)

    Returns:
        Configured FastAPI application
    """
    config = config or KeygateConfig()
    store = store or create_record_store(config.store)
    service = OAuthService(store, config.oauth, secret_factory=secret_factory, clock=clock)
    metrics = KeygateMetrics(registry=CollectorRegistry())
    health_check = HealthCheck.from_config(store, config.cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Keygate v{__version__} starting")
        await service.bootstrap(config.bootstrap)
        yield
        await health_check.close()
        await store.close()
        logger.info("Keygate stopped")

    app = FastAPI(
        title="Keygate",
        description="OAuth 2.0 Authorization Server",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.store = store
    app.state.oauth_service = service
    app.state.metrics = metrics

    app.add_middleware(
        SessionMiddleware,
        secret_key=config.session.secret_key,
        session_cookie=config.session.cookie_name,
        max_age=config.session.max_age,
        path=config.session.path,
        https_only=config.session.https_only,
        same_site="lax",
    )
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)
    register_web_handlers(app)

    app.include_router(create_oauth_router(service, metrics))
    app.include_router(create_web_router(service, metrics))
    app.include_router(create_health_router(health_check))

    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics() -> Response:
        return Response(content=metrics.generate_metrics(), media_type=metrics.get_content_type())

    return app
