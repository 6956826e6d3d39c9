"""Tests for failure classification and rendering."""

from dataclasses import replace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from src.frontend.error_classifier import (
    ERROR_TEMPLATE,
    MAINTENANCE_TEMPLATE,
    classify,
    error_kind,
)
from src.frontend.errors import ErrorKind, IntegrationError
from src.frontend.main import create_app


class TestClassify:
    @pytest.mark.parametrize(
        ("kind", "status_code"),
        [
            (ErrorKind.UNAUTHORIZED, 401),
            (ErrorKind.FORBIDDEN, 403),
            (ErrorKind.NOT_FOUND, 404),
            (ErrorKind.UNKNOWN, 400),
        ],
    )
    def test_status_codes(self, settings, kind, status_code):
        response = classify(kind, settings)

        assert response.status_code == status_code
        assert response.template == ERROR_TEMPLATE

    def test_maintenance_uses_configured_status(self, settings):
        response = classify(ErrorKind.MAINTENANCE, replace(settings, maintenance_status_code=502))

        assert response.status_code == 502
        assert response.template == MAINTENANCE_TEMPLATE

    def test_unclassified_exceptions_are_unknown(self):
        assert error_kind(RuntimeError("boom")) is ErrorKind.UNKNOWN
        assert error_kind(IntegrationError(ErrorKind.FORBIDDEN)) is ErrorKind.FORBIDDEN


class TestErrorClassifierMiddleware:
    def test_unexpected_exception_renders_generic_page(self, app, client):
        @app.get("/explode")
        async def explode():
            raise RuntimeError("database password is hunter2")

        response = client.get("/explode")

        assert response.status_code == 400
        assert "GitHub + Jira integration" in response.text
        assert "hunter2" not in response.text

    def test_validation_errors_are_classified_once(self, client, github_login):
        github_login()

        with patch("src.frontend.error_classifier.enrich_diagnostics") as mock_enrich:
            response = client.get("/github/subscriptions/not-a-number")

        assert response.status_code == 400
        assert "GitHub + Jira integration" in response.text
        mock_enrich.assert_called_once()

    def test_diagnostics_receive_request_body(self, client):
        with patch("src.frontend.error_classifier.enrich_diagnostics") as mock_enrich:
            response = client.post(
                "/jira/events/enabled",
                content=b'{"baseUrl": "https://acme.example"}',
                headers={"content-type": "application/json"},
            )

        assert response.status_code == 404
        request, exc, body, param = mock_enrich.call_args.args
        assert isinstance(exc, IntegrationError)
        assert exc.kind is ErrorKind.NOT_FOUND
        assert body == b'{"baseUrl": "https://acme.example"}'
        assert param == "xdm_e"

    def test_webhook_failures_have_no_body(self, client):
        response = client.post("/jira/events/disabled", json={})

        assert response.status_code == 400
        assert response.content == b""

    def test_unmatched_route_renders_generic_page(self, client):
        response = client.get("/no-such-page")

        assert response.status_code == 404
        assert "GitHub + Jira integration" in response.text

    def test_wrong_method_is_bad_request(self, client):
        response = client.put("/github/configuration")

        assert response.status_code == 400
        assert "GitHub + Jira integration" in response.text

    def test_unknown_lifecycle_callback_has_no_body(self, client):
        response = client.post("/jira/events/archived", json={})

        assert response.status_code == 404
        assert response.content == b""

    def test_session_survives_error_response(self, client):
        # The failing request still binds the host
        assert client.get("/jira/sync", params={"xdm_e": "https://acme.example"}).status_code == 400
        assert client.get("/jira/configuration").status_code == 200


class TestExceptionDebugMode:
    @pytest.fixture
    def debug_client(self, settings, tenant_store, github_oauth):
        app = create_app(replace(settings, exception_debug_mode=True), tenant_store, github_oauth)
        return TestClient(app, base_url="https://testserver")

    def test_raw_exception_surfaces(self, debug_client):
        with pytest.raises(RuntimeError, match="Boom"):
            debug_client.get("/boom")

    def test_classified_errors_surface_too(self, debug_client):
        with pytest.raises(IntegrationError):
            debug_client.get("/jira/configuration")

    def test_boom_route_only_in_debug_mode(self, client):
        assert client.get("/boom").status_code == 404
