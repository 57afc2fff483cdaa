"""FastAPI application factory."""

from fastapi import FastAPI

from newt_healthd import __version__
from newt_healthd.api import api_router
from newt_healthd.core.config import Settings, get_settings
from newt_healthd.services.health import HealthChecker


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Resolved settings; read from the environment when omitted

    Returns:
        Application serving ``/healthz`` and ``/``
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="newt-healthd",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.health_checker = HealthChecker(settings)

    app.include_router(api_router)

    return app
