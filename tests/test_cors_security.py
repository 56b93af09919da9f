"""Tests for CORS configuration."""

import pytest
from fastapi.testclient import TestClient

from main import app


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


class TestCORSConfiguration:
    """Test CORS configuration adheres to security requirements."""

    def test_cors_preflight_for_ask(self, client):
        """The capture client posts screenshots cross-origin."""
        response = client.options(
            "/api/v1/ask",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert response.headers["Access-Control-Allow-Credentials"] == "true"

    def test_cors_request_from_disallowed_origin(self, client):
        """Test CORS withholds headers from disallowed origins."""
        response = client.get(
            "/api/v1/health",
            headers={"Origin": "http://malicious-site.com"},
        )

        assert response.status_code == 200
        if "Access-Control-Allow-Origin" in response.headers:
            assert (
                response.headers["Access-Control-Allow-Origin"]
                != "http://malicious-site.com"
            )

    def test_correlation_header_is_exposed(self, client):
        response = client.get(
            "/api/v1/health",
            headers={"Origin": "http://localhost:5173"},
        )

        assert "X-Correlation-ID" in response.headers
        assert "x-correlation-id" in response.headers[
            "Access-Control-Expose-Headers"
        ].lower()
