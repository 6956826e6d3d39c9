"""Shared fixtures for the frontend tests."""

import json
import time
from dataclasses import replace
from urllib.parse import parse_qs, urlparse

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from connectors.github import GitHubOAuthClient
from connectors.jira import create_query_string_hash
from src.frontend.main import create_app
from src.frontend.settings import Settings
from src.jira.models import InstallationState, TenantRecord

ACME_HOST = "https://acme.example"
ACME_SECRET = "acme-shared-secret"
VALID_GITHUB_CODE = "good-code"
VALID_GITHUB_TOKEN = "gho_valid"
GITHUB_LOGIN = "octocat"


class InMemoryTenantStore:
    """TenantStore fake with the same atomicity guarantees as the repository."""

    def __init__(self):
        self.records: dict[str, TenantRecord] = {}

    def seed(self, host: str, secret: str, state: InstallationState) -> None:
        self.records[host] = TenantRecord(host=host, shared_secret=secret, installation_state=state)

    async def get(self, host: str) -> TenantRecord | None:
        record = self.records.get(host)
        return replace(record) if record else None

    async def upsert_installed(
        self, host: str, shared_secret: str, client_key: str | None = None
    ) -> TenantRecord:
        existing = self.records.get(host)
        record = TenantRecord(
            host=host,
            shared_secret=shared_secret,
            installation_state=InstallationState.INSTALLED,
            client_key=client_key or (existing.client_key if existing else None),
        )
        self.records[host] = record
        return replace(record)

    async def compare_and_set_state(
        self, host: str, expected: InstallationState, new: InstallationState
    ) -> bool:
        record = self.records.get(host)
        if record is None or record.installation_state is not expected:
            return False
        self.records[host] = replace(record, installation_state=new)
        return True


def github_handler(request: httpx.Request) -> httpx.Response:
    """Stand-in for the GitHub OAuth and user endpoints."""
    if request.url.path == "/login/oauth/access_token":
        form = parse_qs(request.content.decode())
        if form.get("code") == [VALID_GITHUB_CODE]:
            return httpx.Response(200, json={"access_token": VALID_GITHUB_TOKEN})
        return httpx.Response(200, json={"error": "bad_verification_code"})

    if request.url.path == "/user":
        if request.headers.get("Authorization") == f"Bearer {VALID_GITHUB_TOKEN}":
            return httpx.Response(200, json={"login": GITHUB_LOGIN})
        return httpx.Response(401, json={"message": "Bad credentials"})

    return httpx.Response(404)


@pytest.fixture
def settings():
    return Settings(
        session_secret="test-session-secret",
        github_client_id="test-client-id",
        github_client_secret="test-client-secret",
        app_url="https://bridge.example",
        environment="test",
    )


@pytest.fixture
def tenant_store():
    return InMemoryTenantStore()


@pytest.fixture
def github_oauth():
    return GitHubOAuthClient(
        "test-client-id", "test-client-secret", transport=httpx.MockTransport(github_handler)
    )


@pytest.fixture
def app(settings, tenant_store, github_oauth):
    return create_app(settings=settings, tenant_store=tenant_store, github_oauth=github_oauth)


@pytest.fixture
def client(app):
    # The session cookie is Secure, so the client has to talk https
    return TestClient(app, base_url="https://testserver")


@pytest.fixture
def sign_connect_jwt():
    """Build a Connect JWT the way Jira signs requests to the app."""

    def sign(
        secret: str,
        method: str,
        path: str,
        query: dict[str, list[str]] | None = None,
        *,
        qsh: str | None = None,
        expires_in: int = 180,
    ) -> str:
        now = int(time.time())
        claims = {
            "iss": "jira:acme-client-key",
            "iat": now,
            "exp": now + expires_in,
            "qsh": qsh or create_query_string_hash(method, path, query or {}),
        }
        return jwt.encode(claims, secret, algorithm="HS256")

    return sign


@pytest.fixture
def acme_installed(tenant_store):
    tenant_store.seed(ACME_HOST, ACME_SECRET, InstallationState.INSTALLED)
    return tenant_store


@pytest.fixture
def bind_tenant(client):
    """Bind a Jira host to the test client's session."""

    def bind(host: str = ACME_HOST) -> None:
        response = client.get("/health/live", params={"xdm_e": host})
        assert response.status_code == 200

    return bind


@pytest.fixture
def github_login(client):
    """Run the OAuth flow so the test client's session holds a valid grant."""

    def login() -> None:
        response = client.get("/github/login", follow_redirects=False)
        state = parse_qs(urlparse(response.headers["location"]).query)["state"][0]
        response = client.get(
            "/github/callback",
            params={"code": VALID_GITHUB_CODE, "state": state},
            follow_redirects=False,
        )
        assert response.status_code == 302

    return login


@pytest.fixture
def lifecycle_body():
    """JSON body of a lifecycle callback as Jira sends it."""

    def body(host: str = ACME_HOST, secret: str | None = ACME_SECRET, **extra) -> str:
        payload = {"baseUrl": host, "clientKey": "acme-client-key", **extra}
        if secret is not None:
            payload["sharedSecret"] = secret
        return json.dumps(payload)

    return body
