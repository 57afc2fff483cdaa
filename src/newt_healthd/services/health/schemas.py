"""Health verdict schemas."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CheckFailure(str, Enum):
    """Why a check failed. Internal only, never part of the response body."""

    MISSING = "MISSING"
    NOT_A_FILE = "NOT_A_FILE"
    STAT_ERROR = "STAT_ERROR"
    TOO_OLD = "TOO_OLD"
    TIMEOUT = "TIMEOUT"
    NOT_ACTIVE = "NOT_ACTIVE"
    UNEXPECTED = "UNEXPECTED"


class CheckDetail(BaseModel):
    """Result of a single named check."""

    model_config = ConfigDict(frozen=True)

    ok: bool = Field(..., description="Whether the check passed")
    message: str | None = Field(None, description="Diagnostic message")
    failure: CheckFailure | None = Field(None, exclude=True, description="Failure kind")

    @classmethod
    def passed(cls, message: str) -> "CheckDetail":
        return cls(ok=True, message=message)

    @classmethod
    def failed(cls, failure: CheckFailure, message: str) -> "CheckDetail":
        return cls(ok=False, message=message, failure=failure)


class HealthVerdict(BaseModel):
    """Aggregated result of one poll."""

    model_config = ConfigDict(frozen=True)

    ok: bool = Field(..., description="Conjunction of every executed check")
    timestamp: datetime = Field(..., serialization_alias="now", description="Poll time (UTC)")
    checks: dict[str, CheckDetail] = Field(default_factory=dict, description="Per-check detail")

    def to_wire(self) -> dict[str, Any]:
        """Render the JSON response body.

        Returns:
            ``{"ok": ..., "now": ..., "checks": {...}}`` with empty messages omitted
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
