"""Tests for binding the Jira tenant host to the browser session."""

HOST = "https://acme.example"
OTHER_HOST = "https://globex.example"


def bound_host(client) -> str | None:
    response = client.get("/jira/configuration")
    if response.status_code != 200:
        return None
    for host in (HOST, OTHER_HOST):
        if f"GitHub configuration for {host}" in response.text:
            return host
    return None


class TestSessionHostBinder:
    def test_no_host_without_parameter(self, client):
        client.get("/health/live")

        assert bound_host(client) is None

    def test_parameter_binds_host(self, client, bind_tenant):
        bind_tenant(HOST)

        assert bound_host(client) == HOST

    def test_later_parameter_overwrites_host(self, client, bind_tenant):
        bind_tenant(HOST)
        bind_tenant(OTHER_HOST)

        assert bound_host(client) == OTHER_HOST

    def test_requests_without_parameter_keep_host(self, client, bind_tenant):
        bind_tenant(HOST)
        client.get("/health/live", params={"other": "value"})
        client.get("/health/live", params={"xdm_e": ""})

        assert bound_host(client) == HOST

    def test_binding_survives_a_failed_request(self, client):
        # No GitHub session: this request ends in a redirect to the login page
        response = client.get(
            "/github/configuration", params={"xdm_e": HOST}, follow_redirects=False
        )
        assert response.status_code == 302

        assert bound_host(client) == HOST

    def test_binding_on_unknown_path(self, client):
        assert client.get("/nowhere", params={"xdm_e": HOST}).status_code == 404

        assert bound_host(client) == HOST
