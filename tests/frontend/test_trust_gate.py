"""Tests for route-level trust enforcement."""

import asyncio
from dataclasses import replace

import httpx
import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from starlette.requests import Request

from connectors.github import GitHubOAuthClient
from connectors.jira.jira_jwt import CONTEXT_QSH
from src.frontend.main import create_app
from src.frontend.principal import ANONYMOUS, TrackerTenant, get_principal
from src.frontend.trust_gate import TrustDomain, require_trust

HOST = "https://acme.example"
SECRET = "acme-shared-secret"


def github_client_answering(handler) -> GitHubOAuthClient:
    return GitHubOAuthClient("id", "secret", transport=httpx.MockTransport(handler))


class TestRequireTrust:
    def test_webhook_domain_requires_event(self):
        with pytest.raises(ValueError):
            require_trust(TrustDomain.TRACKER_WEBHOOK)


class TestGitHubSession:
    def test_no_session_redirects_to_login(self, client):
        response = client.get("/github/configuration", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/github/login"

    def test_valid_session(self, client, github_login):
        github_login()

        response = client.get("/github/configuration")

        assert response.status_code == 200
        assert "Signed in as octocat" in response.text

    def test_return_to_after_login(self, client):
        client.get("/github/installations", params={"page": "2"}, follow_redirects=False)

        response = client.get("/github/login", follow_redirects=False)
        state = httpx.URL(response.headers["location"]).params["state"]
        response = client.get(
            "/github/callback",
            params={"code": "good-code", "state": state},
            follow_redirects=False,
        )

        assert response.headers["location"] == "/github/installations?page=2"

    def test_revoked_grant_is_dropped(self, app, client, github_login, github_oauth):
        github_login()
        app.state.github_oauth = github_client_answering(lambda request: httpx.Response(401))

        response = client.get("/github/configuration", follow_redirects=False)
        assert response.status_code == 302

        # GitHub is healthy again, but the grant was removed from the session
        app.state.github_oauth = github_oauth
        response = client.get("/github/configuration", follow_redirects=False)
        assert response.status_code == 302

    def test_github_outage_is_unknown(self, app, client, github_login):
        github_login()
        app.state.github_oauth = github_client_answering(lambda request: httpx.Response(502))

        response = client.get("/github/configuration", follow_redirects=False)

        assert response.status_code == 400
        assert "GitHub + Jira integration" in response.text

    def test_slow_github_times_out(self, settings, tenant_store, github_oauth):
        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200, json={"login": "octocat"})

        app = create_app(
            replace(settings, verifier_timeout_seconds=0.05), tenant_store, github_oauth
        )
        client = TestClient(app, base_url="https://testserver")
        response = client.get("/github/login", follow_redirects=False)
        state = httpx.URL(response.headers["location"]).params["state"]
        client.get("/github/callback", params={"code": "good-code", "state": state})
        app.state.github_oauth = github_client_answering(slow)

        response = client.get("/github/configuration", follow_redirects=False)

        assert response.status_code == 400

    def test_connect_jwt_does_not_grant_github_session(
        self, client, acme_installed, sign_connect_jwt
    ):
        token = sign_connect_jwt(SECRET, "GET", "/github/configuration")

        response = client.get(
            "/github/configuration",
            headers={"authorization": f"JWT {token}"},
            follow_redirects=False,
        )

        assert response.status_code == 302


class TestTrackerSessionBound:
    def test_no_bound_host_is_unauthorized(self, client):
        response = client.get("/jira/configuration")

        assert response.status_code == 401
        assert "GitHub + Jira integration" in response.text
        # The error message is never rendered
        assert "No Jira host bound" not in response.text

    def test_github_session_alone_is_not_enough(self, client, github_login):
        github_login()

        assert client.get("/jira/configuration").status_code == 401

    def test_bound_host_without_token(self, client, bind_tenant):
        bind_tenant(HOST)

        response = client.get("/jira/configuration")

        assert response.status_code == 200
        assert f"GitHub configuration for {HOST}" in response.text

    def test_iframe_load_with_request_token(self, client, acme_installed, sign_connect_jwt):
        token = sign_connect_jwt(SECRET, "GET", "/jira/configuration", {"xdm_e": [HOST]})

        response = client.get("/jira/configuration", params={"xdm_e": HOST, "jwt": token})

        assert response.status_code == 200

    def test_iframe_load_with_context_token(self, client, acme_installed, sign_connect_jwt):
        token = sign_connect_jwt(SECRET, "GET", "/jira/configuration", qsh=CONTEXT_QSH)

        response = client.get("/jira/configuration", params={"xdm_e": HOST, "jwt": token})

        assert response.status_code == 200

    def test_token_signed_with_wrong_secret(self, client, acme_installed, sign_connect_jwt):
        token = sign_connect_jwt("wrong", "GET", "/jira/configuration", {"xdm_e": [HOST]})

        response = client.get("/jira/configuration", params={"xdm_e": HOST, "jwt": token})

        assert response.status_code == 401

    def test_token_for_unknown_tenant(self, client, sign_connect_jwt):
        token = sign_connect_jwt(SECRET, "GET", "/jira/configuration", {"xdm_e": [HOST]})

        response = client.get("/jira/configuration", params={"xdm_e": HOST, "jwt": token})

        assert response.status_code == 404

    def test_principal_does_not_outlive_request(self, app, client, bind_tenant):
        bind_tenant(HOST)
        assert client.get("/jira/configuration").status_code == 200

        fresh = TestClient(app, base_url="https://testserver")
        assert fresh.get("/jira/configuration").status_code == 401


class TestPrincipal:
    def test_anonymous_without_gate(self):
        request = Request({"type": "http", "method": "GET", "path": "/", "headers": []})

        assert get_principal(request) is ANONYMOUS

    def test_gate_attaches_principal(self, app, client, bind_tenant):
        seen = []
        gate = require_trust(TrustDomain.TRACKER_SESSION_BOUND)

        @app.get("/whoami", dependencies=[Depends(gate)])
        async def whoami(request: Request):
            seen.append(get_principal(request))
            return {}

        bind_tenant(HOST)
        assert client.get("/whoami").status_code == 200

        assert seen == [TrackerTenant(HOST)]
