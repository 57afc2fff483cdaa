"""Test cases for the HTTP surface."""

import os
import time
from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from newt_healthd.core.config import Settings
from newt_healthd.main import create_app
from newt_healthd.services.health import CheckDetail, CheckFailure

CHECK_SYSTEMD_TARGET = "newt_healthd.services.health.checker.check_systemd"


class TestHealthzEndpoint:
    """Test /healthz."""

    def test_healthy_returns_200(self, client: TestClient):
        """Test a fresh marker returns 200 with the verdict."""
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        data = response.json()
        assert data["ok"] is True
        assert data["checks"] == {"newt_health_file": {"ok": True, "message": "present"}}

    def test_includes_utc_timestamp(self, client: TestClient):
        """Test the body carries an RFC 3339 UTC timestamp."""
        data = client.get("/healthz").json()

        assert data["now"].endswith("Z")
        datetime.fromisoformat(data["now"].replace("Z", "+00:00"))

    def test_missing_marker_returns_503(self, client: TestClient, health_file):
        """Test a missing marker returns 503."""
        health_file.unlink()

        response = client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["ok"] is False
        assert data["checks"]["newt_health_file"] == {
            "ok": False,
            "message": "health file missing",
        }

    def test_stale_marker_returns_503(self, client: TestClient, health_file):
        """Test a stale marker returns 503 with the age in the message."""
        mtime = time.time() - 600
        os.utime(health_file, (mtime, mtime))

        response = client.get("/healthz")

        assert response.status_code == 503
        message = response.json()["checks"]["newt_health_file"]["message"]
        assert message.startswith("health file too old: ")
        assert "> 2m0s" in message

    def test_directory_marker_returns_503(self, tmp_path):
        """Test a directory at the marker path returns 503."""
        app = create_app(Settings(_env_file=None, newt_health_file=tmp_path))

        with TestClient(app) as client:
            response = client.get("/healthz")

        assert response.status_code == 503
        assert response.json()["checks"]["newt_health_file"]["message"] == (
            "health file path is a directory"
        )

    def test_no_systemd_key_when_disabled(self, client: TestClient):
        """Test the systemd entry is absent when the check is disabled."""
        assert "systemd" not in client.get("/healthz").json()["checks"]

    @pytest.mark.parametrize(
        "detail,status_code",
        [
            (CheckDetail.passed("active"), 200),
            (CheckDetail.failed(CheckFailure.NOT_ACTIVE, "not active"), 503),
            (CheckDetail.failed(CheckFailure.TIMEOUT, "systemctl timeout"), 503),
        ],
    )
    def test_systemd_entry(self, health_file, detail, status_code):
        """Test the systemd result drives the status code when enabled."""
        settings = Settings(_env_file=None, newt_health_file=health_file, check_systemd=True)

        with patch(CHECK_SYSTEMD_TARGET, AsyncMock(return_value=detail)):
            with TestClient(create_app(settings)) as client:
                response = client.get("/healthz")

        assert response.status_code == status_code
        data = response.json()
        assert data["ok"] is (status_code == 200)
        assert data["checks"]["systemd"] == {"ok": detail.ok, "message": detail.message}

    def test_repeated_polls_agree(self, client: TestClient):
        """Test polls without state changes return the same checks."""
        first = client.get("/healthz").json()
        second = client.get("/healthz").json()

        assert first["ok"] == second["ok"]
        assert first["checks"] == second["checks"]


class TestRootEndpoint:
    """Test /."""

    def test_root_returns_ok(self, client: TestClient):
        """Test the reachability probe body."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.text == "ok\n"
        assert response.headers["content-type"].startswith("text/plain")

    def test_root_ignores_health_state(self, client: TestClient, health_file):
        """Test / stays 200 when the marker is missing."""
        health_file.unlink()

        assert client.get("/healthz").status_code == 503
        assert client.get("/").status_code == 200


class TestUnknownPaths:
    """Test paths without a route."""

    def test_unknown_path_not_found(self, client: TestClient):
        """Test an unknown path gets the default 404."""
        assert client.get("/metrics").status_code == 404

    def test_docs_disabled(self, client: TestClient):
        """Test OpenAPI routes are not exposed."""
        assert client.get("/docs").status_code == 404
        assert client.get("/openapi.json").status_code == 404
