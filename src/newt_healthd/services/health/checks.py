"""Check providers.

Each provider answers one question about a dependency and reports the answer
as a CheckDetail. Providers never raise for an unhealthy dependency.
"""

import asyncio
import contextlib
import logging
import os
import stat
import time
from datetime import timedelta
from pathlib import Path

from newt_healthd.core.durations import format_duration, round_seconds
from newt_healthd.services.health.schemas import CheckDetail, CheckFailure

logger = logging.getLogger(__name__)

HEALTH_FILE_CHECK = "newt_health_file"
SYSTEMD_CHECK = "systemd"

SYSTEMCTL = "systemctl"


def check_health_file(
    path: Path,
    max_age: timedelta,
    now: float | None = None,
) -> CheckDetail:
    """Inspect the marker file.

    Args:
        path: Marker file path
        max_age: Maximum allowed age since last modification; zero disables
        now: Current epoch time, defaults to ``time.time()``

    Returns:
        Check detail for the marker
    """
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return CheckDetail.failed(CheckFailure.MISSING, "health file missing")
    except OSError as e:
        return CheckDetail.failed(CheckFailure.STAT_ERROR, f"stat error: {e}")

    if stat.S_ISDIR(st.st_mode):
        return CheckDetail.failed(CheckFailure.NOT_A_FILE, "health file path is a directory")

    if max_age > timedelta(0):
        current = time.time() if now is None else now
        age = timedelta(seconds=current - st.st_mtime)
        if age > max_age:
            return CheckDetail.failed(
                CheckFailure.TOO_OLD,
                "health file too old: "
                f"{format_duration(round_seconds(age))} > {format_duration(round_seconds(max_age))}",
            )

    return CheckDetail.passed("present")


async def _systemctl_is_active(unit: str) -> int:
    process = await asyncio.create_subprocess_exec(
        SYSTEMCTL,
        "is-active",
        "--quiet",
        unit,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        return await process.wait()
    except asyncio.CancelledError:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise


async def check_systemd(unit: str, timeout: timedelta) -> CheckDetail:
    """Ask systemd whether ``unit`` is active.

    The whole query, including spawning systemctl, is bounded by ``timeout``;
    on expiry the child is killed. A missing systemctl binary counts as
    "not active", same as a stopped or unknown unit.
    """
    try:
        returncode = await asyncio.wait_for(
            _systemctl_is_active(unit), timeout=timeout.total_seconds()
        )
    except asyncio.TimeoutError:
        return CheckDetail.failed(CheckFailure.TIMEOUT, "systemctl timeout")
    except OSError as e:
        logger.debug("Cannot run %s: %s", SYSTEMCTL, e)
        return CheckDetail.failed(CheckFailure.NOT_ACTIVE, "not active")

    if returncode == 0:
        return CheckDetail.passed("active")
    return CheckDetail.failed(CheckFailure.NOT_ACTIVE, "not active")
