"""Health API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from newt_healthd.services.health import HealthChecker

router = APIRouter(tags=["Health"])


def get_health_checker(request: Request) -> HealthChecker:
    """Get the HealthChecker built for this application."""
    return request.app.state.health_checker


HealthCheckerDep = Annotated[HealthChecker, Depends(get_health_checker)]


@router.api_route("/healthz", methods=["GET", "HEAD"])
async def healthz(checker: HealthCheckerDep) -> JSONResponse:
    """Readiness probe for the load balancer.

    The status code is chosen from the complete verdict before anything is
    written: 200 when every enabled check passes, 503 otherwise.
    """
    verdict = await checker.check_all()
    status_code = (
        status.HTTP_200_OK if verdict.ok else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    return JSONResponse(verdict.to_wire(), status_code=status_code)


@router.api_route("/", methods=["GET", "HEAD"], response_class=PlainTextResponse)
async def root() -> PlainTextResponse:
    """Reachability probe, independent of health state."""
    return PlainTextResponse("ok\n")
