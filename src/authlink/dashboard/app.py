"""FastAPI application exposing enrollment and login as JSON endpoints."""

from __future__ import annotations

from fastapi import FastAPI

from authlink import __version__
from authlink.config import settings
from authlink.services import Services, build_services


def create_app(services: Services | None = None) -> FastAPI:
    app = FastAPI(
        title="AuthLink",
        description="Two-factor enrollment and operator sign-in",
        version=__version__,
    )
    app.state.services = services or build_services(settings)

    from authlink.dashboard.routes import login, two_factor

    app.include_router(two_factor.router)
    app.include_router(login.router)
    return app
