"""Health aggregator."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from newt_healthd.core.config import Settings
from newt_healthd.services.health.checks import (
    HEALTH_FILE_CHECK,
    SYSTEMD_CHECK,
    check_health_file,
    check_systemd,
)
from newt_healthd.services.health.schemas import CheckDetail, CheckFailure, HealthVerdict

logger = logging.getLogger(__name__)

CheckFn = Callable[[], Awaitable[CheckDetail]]


class HealthChecker:
    """Runs every enabled check on each poll and combines the results."""

    def __init__(self, settings: Settings):
        """Initialize health checker.

        Args:
            settings: Resolved application settings
        """
        self.settings = settings
        self._health_checks: dict[str, CheckFn] = {}

        self._register_default_checks()

    def _register_default_checks(self) -> None:
        """Register the marker check, plus the systemd check when enabled."""
        self.register_check(HEALTH_FILE_CHECK, self._check_health_file)
        if self.settings.check_systemd:
            self.register_check(SYSTEMD_CHECK, self._check_systemd)

    def register_check(self, name: str, check_fn: CheckFn) -> None:
        """Register a health check.

        Args:
            name: Check name, used as the key in the verdict
            check_fn: Coroutine function returning CheckDetail
        """
        self._health_checks[name] = check_fn

    @property
    def check_names(self) -> list[str]:
        return list(self._health_checks)

    async def check_all(self) -> HealthVerdict:
        """Run all health checks.

        Returns:
            Verdict whose ``ok`` is the conjunction of every check
        """
        checks: dict[str, CheckDetail] = {}

        for name, check_fn in self._health_checks.items():
            try:
                result = await check_fn()
            except Exception as e:
                logger.exception("Health check %s raised", name)
                result = CheckDetail.failed(CheckFailure.UNEXPECTED, str(e))

            if not result.ok:
                logger.warning("Health check %s failed: %s", name, result.message)
            checks[name] = result

        return HealthVerdict(
            ok=all(detail.ok for detail in checks.values()),
            timestamp=datetime.now(timezone.utc),
            checks=checks,
        )

    async def _check_health_file(self) -> CheckDetail:
        return await asyncio.to_thread(
            check_health_file,
            self.settings.newt_health_file,
            self.settings.max_age,
        )

    async def _check_systemd(self) -> CheckDetail:
        return await check_systemd(self.settings.systemd_unit, self.settings.systemd_timeout)
