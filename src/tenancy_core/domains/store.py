"""Domain verification persistence."""

from typing import Any

from tenancy_core.domains.models import DomainVerification
from tenancy_core.protocols import Database
from tenancy_core.tenants.models import format_timestamp

SCHEMA = """
CREATE TABLE IF NOT EXISTS domain_verifications (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    domain TEXT NOT NULL UNIQUE,
    method TEXT NOT NULL,
    token TEXT NOT NULL,
    is_verified INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    verified_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_domain_verifications_tenant ON domain_verifications (tenant_id);
"""


def _params(record: DomainVerification) -> dict[str, Any]:
    return {
        "id": record.id,
        "tenant_id": record.tenant_id,
        "domain": record.domain,
        "method": record.method.value,
        "token": record.token,
        "is_verified": 1 if record.is_verified else 0,
        "created_at": format_timestamp(record.created_at),
        "expires_at": format_timestamp(record.expires_at),
        "verified_at": format_timestamp(record.verified_at),
    }


class DomainVerificationStore:
    """CRUD for verification records. A domain has at most one record."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def ensure_schema(self) -> None:
        await self.db.execute_script(SCHEMA)

    async def create(self, record: DomainVerification) -> DomainVerification:
        await self.db.execute(
            """
            INSERT INTO domain_verifications
            (id, tenant_id, domain, method, token, is_verified, created_at, expires_at, verified_at)
            VALUES (:id, :tenant_id, :domain, :method, :token, :is_verified, :created_at, :expires_at, :verified_at)
            """,
            _params(record),
        )
        return record

    async def get_by_domain(self, domain: str) -> DomainVerification | None:
        rows = await self.db.execute(
            "SELECT * FROM domain_verifications WHERE domain = :domain",
            {"domain": domain},
        )
        return DomainVerification.from_row(rows[0]) if rows else None

    async def list_for_tenant(self, tenant_id: str) -> list[DomainVerification]:
        rows = await self.db.execute(
            "SELECT * FROM domain_verifications WHERE tenant_id = :tenant_id ORDER BY created_at",
            {"tenant_id": tenant_id},
        )
        return [DomainVerification.from_row(row) for row in rows]

    async def mark_verified(self, record: DomainVerification) -> None:
        await self.db.execute(
            """
            UPDATE domain_verifications
            SET is_verified = :is_verified, verified_at = :verified_at
            WHERE id = :id
            """,
            _params(record),
        )

    async def delete(self, domain: str) -> None:
        await self.db.execute(
            "DELETE FROM domain_verifications WHERE domain = :domain",
            {"domain": domain},
        )

    async def delete_for_tenant(self, tenant_id: str) -> None:
        await self.db.execute(
            "DELETE FROM domain_verifications WHERE tenant_id = :tenant_id",
            {"tenant_id": tenant_id},
        )
