"""Health check service module."""

from newt_healthd.services.health.checker import HealthChecker
from newt_healthd.services.health.checks import (
    HEALTH_FILE_CHECK,
    SYSTEMD_CHECK,
    check_health_file,
    check_systemd,
)
from newt_healthd.services.health.schemas import CheckDetail, CheckFailure, HealthVerdict

__all__ = [
    "HealthChecker",
    "CheckDetail",
    "CheckFailure",
    "HealthVerdict",
    "HEALTH_FILE_CHECK",
    "SYSTEMD_CHECK",
    "check_health_file",
    "check_systemd",
]
