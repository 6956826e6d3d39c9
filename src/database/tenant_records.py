"""Storage for Jira tenant records in the control database.

All writes are single atomic statements: installs are upserts and state
transitions are compare-and-set on installation_state, so concurrent
lifecycle deliveries for one host never lose an update.
"""

from typing import Protocol

import asyncpg

from src.jira.models import InstallationState, TenantRecord

TENANT_RECORDS_SCHEMA = """
CREATE TABLE IF NOT EXISTS jira_tenants (
    host TEXT PRIMARY KEY,
    shared_secret TEXT NOT NULL,
    client_key TEXT,
    installation_state TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


class TenantStore(Protocol):
    """Persistence interface used by the trust gate and lifecycle handling."""

    async def get(self, host: str) -> TenantRecord | None: ...

    async def upsert_installed(
        self, host: str, shared_secret: str, client_key: str | None = None
    ) -> TenantRecord:
        """Create the record, or rotate its secret, leaving it in the installed state."""
        ...

    async def compare_and_set_state(
        self, host: str, expected: InstallationState, new: InstallationState
    ) -> bool:
        """Set the state only if it still equals `expected`. Returns whether it was applied."""
        ...


def _record_from_row(row: asyncpg.Record) -> TenantRecord:
    return TenantRecord(
        host=row["host"],
        shared_secret=row["shared_secret"],
        client_key=row["client_key"],
        installation_state=InstallationState(row["installation_state"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class TenantRecordsRepository:
    """asyncpg-backed TenantStore."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(TENANT_RECORDS_SCHEMA)

    async def get(self, host: str) -> TenantRecord | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT host, shared_secret, client_key, installation_state,
                       created_at, updated_at
                FROM jira_tenants
                WHERE host = $1
                """,
                host,
            )
            return _record_from_row(row) if row else None

    async def upsert_installed(
        self, host: str, shared_secret: str, client_key: str | None = None
    ) -> TenantRecord:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO jira_tenants (host, shared_secret, client_key, installation_state)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (host) DO UPDATE
                SET shared_secret = EXCLUDED.shared_secret,
                    client_key = COALESCE(EXCLUDED.client_key, jira_tenants.client_key),
                    installation_state = EXCLUDED.installation_state,
                    updated_at = now()
                RETURNING host, shared_secret, client_key, installation_state,
                          created_at, updated_at
                """,
                host,
                shared_secret,
                client_key,
                InstallationState.INSTALLED.value,
            )
            return _record_from_row(row)

    async def compare_and_set_state(
        self, host: str, expected: InstallationState, new: InstallationState
    ) -> bool:
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE jira_tenants
                SET installation_state = $3, updated_at = now()
                WHERE host = $1 AND installation_state = $2
                """,
                host,
                expected.value,
                new.value,
            )
            # asyncpg returns the command tag, e.g. "UPDATE 1"
            return result.split()[-1] != "0"
