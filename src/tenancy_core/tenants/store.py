"""Tenant persistence on the control-plane database."""

import json
from datetime import datetime
from typing import Any

from tenancy_core.protocols import Database
from tenancy_core.tenants.models import Tenant, TenantStatus, format_timestamp, utcnow

SCHEMA = """
CREATE TABLE IF NOT EXISTS tenants (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL UNIQUE,
    company_name TEXT NOT NULL,
    owner_email TEXT,
    owner_name TEXT,
    tier TEXT NOT NULL,
    status TEXT NOT NULL,
    deployment_mode TEXT NOT NULL,
    namespace TEXT,
    db_connection_string TEXT,
    custom_domain TEXT,
    domain_verified INTEGER NOT NULL DEFAULT 0,
    stripe_customer_id TEXT,
    stripe_subscription_id TEXT,
    metadata TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    trial_ends_at TEXT,
    CHECK ((namespace IS NULL) = (db_connection_string IS NULL))
);
CREATE INDEX IF NOT EXISTS idx_tenants_custom_domain ON tenants (custom_domain);
CREATE INDEX IF NOT EXISTS idx_tenants_status ON tenants (status);
"""

_COLUMNS = (
    "id", "tenant_id", "company_name", "owner_email", "owner_name", "tier", "status",
    "deployment_mode", "namespace", "db_connection_string", "custom_domain", "domain_verified",
    "stripe_customer_id", "stripe_subscription_id", "metadata", "created_at", "updated_at",
    "trial_ends_at",
)


def _params(tenant: Tenant) -> dict[str, Any]:
    return {
        "id": tenant.id,
        "tenant_id": tenant.tenant_id,
        "company_name": tenant.company_name,
        "owner_email": tenant.owner_email,
        "owner_name": tenant.owner_name,
        "tier": tenant.tier,
        "status": tenant.status.value,
        "deployment_mode": tenant.deployment_mode.value,
        "namespace": tenant.namespace,
        "db_connection_string": tenant.db_connection_string,
        "custom_domain": tenant.custom_domain,
        "domain_verified": 1 if tenant.domain_verified else 0,
        "stripe_customer_id": tenant.stripe_customer_id,
        "stripe_subscription_id": tenant.stripe_subscription_id,
        "metadata": json.dumps(tenant.metadata),
        "created_at": format_timestamp(tenant.created_at),
        "updated_at": format_timestamp(tenant.updated_at),
        "trial_ends_at": format_timestamp(tenant.trial_ends_at),
    }


class TenantStore:
    """CRUD for tenant records."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def ensure_schema(self) -> None:
        """Create the tenants table if missing."""
        await self.db.execute_script(SCHEMA)

    async def create(self, tenant: Tenant) -> Tenant:
        """Insert a tenant record."""
        columns = ", ".join(_COLUMNS)
        placeholders = ", ".join(f":{name}" for name in _COLUMNS)
        await self.db.execute(
            f"INSERT INTO tenants ({columns}) VALUES ({placeholders})",
            _params(tenant),
        )
        return tenant

    async def get(self, tenant_id: str) -> Tenant | None:
        """Get a tenant by its slug id."""
        rows = await self.db.execute(
            "SELECT * FROM tenants WHERE tenant_id = :tenant_id",
            {"tenant_id": tenant_id},
        )
        return Tenant.from_row(rows[0]) if rows else None

    async def get_by_custom_domain(self, domain: str) -> Tenant | None:
        rows = await self.db.execute(
            "SELECT * FROM tenants WHERE custom_domain = :domain",
            {"domain": domain},
        )
        return Tenant.from_row(rows[0]) if rows else None

    async def list_tenants(
        self,
        status: TenantStatus | None = None,
        tier: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Tenant]:
        """List tenants, newest first.

        Args:
            status: Filter by status
            tier: Filter by tier
            limit: Maximum number of results
            offset: Offset for pagination

        Returns:
            List of tenants
        """
        query = "SELECT * FROM tenants WHERE 1 = 1"
        params: dict[str, Any] = {}
        if status is not None:
            query += " AND status = :status"
            params["status"] = status.value
        if tier is not None:
            query += " AND tier = :tier"
            params["tier"] = tier
        query += " ORDER BY created_at DESC LIMIT :limit OFFSET :offset"
        params["limit"] = limit
        params["offset"] = offset

        rows = await self.db.execute(query, params)
        return [Tenant.from_row(row) for row in rows]

    async def list_expired_demos(self, now: datetime | None = None) -> list[Tenant]:
        """Demo tenants whose trial end has passed."""
        rows = await self.db.execute(
            "SELECT * FROM tenants WHERE tier = :tier AND trial_ends_at IS NOT NULL",
            {"tier": "demo"},
        )
        now = now or utcnow()
        return [t for t in (Tenant.from_row(row) for row in rows) if t.is_trial_expired(now)]

    async def update(self, tenant: Tenant) -> Tenant:
        """Persist every mutable field of a tenant."""
        tenant.updated_at = utcnow()
        assignments = ", ".join(f"{name} = :{name}" for name in _COLUMNS if name not in ("id", "tenant_id"))
        await self.db.execute(
            f"UPDATE tenants SET {assignments} WHERE tenant_id = :tenant_id",
            _params(tenant),
        )
        return tenant

    async def delete(self, tenant_id: str) -> bool:
        """Delete a tenant record. Returns False if it did not exist."""
        existing = await self.get(tenant_id)
        if existing is None:
            return False
        await self.db.execute(
            "DELETE FROM tenants WHERE tenant_id = :tenant_id",
            {"tenant_id": tenant_id},
        )
        return True
