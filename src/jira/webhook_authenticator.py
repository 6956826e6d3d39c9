"""Authentication and state transitions for Connect lifecycle callbacks.

`installed` is accepted on structure alone: the shared secret is delivered in
that very payload, so no signature can be checked. This is the one accepted
trust gap and is limited to bootstrap. Every other event must carry a Connect
JWT signed with the secret on file for the payload's host.

Jira delivers callbacks at least once and in no guaranteed order, so applying
an event is idempotent: re-delivery of the current state is a no-op, and
enabled/disabled arriving after uninstalled are ignored.
"""

from dataclasses import dataclass

from connectors.jira import JiraConnectVerifier
from src.database.tenant_records import TenantStore
from src.frontend.errors import ErrorKind, IntegrationError
from src.frontend.principal import TrackerTenant
from src.frontend.verification import SharedSecretVerifier, raise_for_result
from src.jira.models import InstallationState, LifecycleEvent, LifecyclePayload, TenantRecord
from src.utils.logging import get_logger

logger = get_logger(__name__)

# Compare-and-set retries before giving up on a contended tenant
MAX_TRANSITION_ATTEMPTS = 5


@dataclass(frozen=True)
class AuthenticatedLifecycleEvent:
    event: LifecycleEvent
    payload: LifecyclePayload
    principal: TrackerTenant


class WebhookAuthenticator:
    def __init__(self, store: TenantStore, verifier: SharedSecretVerifier | None = None):
        self.store = store
        self.verifier = verifier or JiraConnectVerifier()

    async def authenticate(
        self,
        event: LifecycleEvent,
        payload: LifecyclePayload,
        *,
        headers: dict[str, str],
        method: str,
        path: str,
        query: dict[str, list[str]],
    ) -> AuthenticatedLifecycleEvent:
        """Check the callback's credential.

        Raises:
            IntegrationError: UNKNOWN for an unusable payload, NOT_FOUND for an
                unknown host, UNAUTHORIZED for a missing or invalid signature
        """
        if not payload.host:
            raise IntegrationError(ErrorKind.UNKNOWN, f"{event.value} payload has no host")

        if not event.requires_signature:
            if not payload.secret:
                raise IntegrationError(ErrorKind.UNKNOWN, "installed payload has no shared secret")
            logger.info("Accepting unsigned installed callback", tenant_host=payload.host)
            return AuthenticatedLifecycleEvent(event, payload, TrackerTenant(payload.host))

        record = await self.store.get(payload.host)
        if record is None:
            raise IntegrationError(
                ErrorKind.NOT_FOUND, f"No installation on file for {payload.host}"
            )

        result = self.verifier.verify(headers, method, path, query, record.shared_secret)
        raise_for_result(result)
        return AuthenticatedLifecycleEvent(event, payload, TrackerTenant(record.host))

    async def apply(self, authenticated: AuthenticatedLifecycleEvent) -> TenantRecord:
        """Apply an authenticated event to the tenant record."""
        host = authenticated.principal.host
        event = authenticated.event

        if event is LifecycleEvent.INSTALLED:
            record = await self.store.upsert_installed(
                host, authenticated.payload.secret or "", authenticated.payload.client_key
            )
            logger.info("Tenant installed", tenant_host=host)
            return record

        return await self._transition(host, event.target_state)

    async def _transition(self, host: str, target: InstallationState) -> TenantRecord:
        for _ in range(MAX_TRANSITION_ATTEMPTS):
            record = await self.store.get(host)
            if record is None:
                raise IntegrationError(ErrorKind.NOT_FOUND, f"No installation on file for {host}")

            current = record.installation_state
            if current is target:
                logger.info("Duplicate lifecycle event", tenant_host=host, state=target.value)
                return record
            if current is InstallationState.UNINSTALLED:
                logger.info(
                    "Ignoring lifecycle event for uninstalled tenant",
                    tenant_host=host,
                    requested_state=target.value,
                )
                return record

            if await self.store.compare_and_set_state(host, current, target):
                logger.info(
                    "Tenant state changed",
                    tenant_host=host,
                    previous_state=current.value,
                    state=target.value,
                )
                record.installation_state = target
                return record

        raise IntegrationError(
            ErrorKind.UNKNOWN,
            f"Could not apply {target.value} to {host}: too many concurrent updates",
        )
