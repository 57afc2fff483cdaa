"""API module."""

from fastapi import APIRouter

from newt_healthd.api.endpoints import health

api_router = APIRouter()

api_router.include_router(health.router)
