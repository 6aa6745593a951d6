"""Tests for the Flask dashboard.

Tests use ``pytest.importorskip`` so they are skipped gracefully when
Flask is not installed.
"""

from __future__ import annotations

from typing import Any

import pytest

flask = pytest.importorskip("flask")

from kernelsim.web.app import create_app  # noqa: E402

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
NUM_APPS = 3


def _create_client() -> Any:
    """Create a test client from a fresh app."""
    app = create_app()
    app.config["TESTING"] = True
    return app.test_client()


class TestAppCreation:
    """Verify the app factory and landing page."""

    def test_create_app_returns_flask(self) -> None:
        """create_app should return a Flask application."""
        assert isinstance(create_app(), flask.Flask)

    def test_index_returns_html(self) -> None:
        """GET / should render the dashboard with the boot log."""
        response = _create_client().get("/")
        assert response.status_code == HTTP_OK
        assert b"kernelsim" in response.data
        assert b"Process A0 created" in response.data


class TestStatus:
    """Verify the status endpoint."""

    def test_status_snapshot(self) -> None:
        """GET /api/status returns the booted state."""
        data = _create_client().get("/api/status").get_json()
        assert data["tick"] == 0
        assert data["current_running"] == 0
        assert len(data["processes"]) == NUM_APPS
        assert "[INFO] kernel: Starting scheduling" in data["log"]


class TestStep:
    """Verify the step endpoint."""

    def test_step_default(self) -> None:
        """POST /api/step with no body advances one tick."""
        client = _create_client()
        data = client.post("/api/step").get_json()
        assert data["tick"] == 1
        assert data["current_running"] == 1

    def test_step_many(self) -> None:
        """The tick count comes from the JSON body."""
        client = _create_client()
        data = client.post("/api/step", json={"ticks": 16}).get_json()
        assert data["tick"] == 16
        assert data["io_in_service"] == 0

    def test_state_persists_between_requests(self) -> None:
        """One app serves one simulation."""
        client = _create_client()
        client.post("/api/step", json={"ticks": 2})
        assert client.get("/api/status").get_json()["tick"] == 2

    @pytest.mark.parametrize("ticks", [0, -1, "3", 1001, True])
    def test_bad_ticks(self, ticks: object) -> None:
        """Out-of-range or non-integer counts are rejected."""
        response = _create_client().post("/api/step", json={"ticks": ticks})
        assert response.status_code == HTTP_BAD_REQUEST
        assert "error" in response.get_json()
