"""FastAPI application factory for the kubeai REST API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from kubeai import __version__

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from kubeai.config.schema import KubeAIConfig
    from kubeai.services import Services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan handler: build services on startup, stop tool servers on shutdown.

    Services injected before startup (tests) are used as-is.
    """
    from kubeai.services import build_services

    services: Services | None = getattr(app.state, "services", None)
    owned = services is None
    if services is None:
        services = await build_services(app.state.config)
        app.state.services = services

    yield

    if owned:
        await services.aclose()


def create_app(
    config: KubeAIConfig | None = None,
    services: Services | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    from kubeai.config.loader import load_config

    if config is None:
        config = services.config if services is not None else load_config()

    app = FastAPI(
        title="kubeai",
        description="Agentic Kubernetes assistant API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    if services is not None:
        app.state.services = services

    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from kubeai.api.health import router as health_router
    from kubeai.api.routes.approval import router as approval_router
    from kubeai.api.routes.chat import router as chat_router

    app.include_router(chat_router)
    app.include_router(approval_router)
    app.include_router(health_router)

    return app
