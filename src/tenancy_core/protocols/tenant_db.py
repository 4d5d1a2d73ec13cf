"""Tenant database provisioner protocol."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class TenantDatabaseProvisioner(Protocol):
    """Creates and drops per-tenant databases.

    ``host``/``port`` select the target PostgreSQL server; when omitted the
    provisioner's own default server is used.
    """

    async def provision(
        self,
        tenant_id: str,
        host: str | None = None,
        port: int | None = None,
        owner_email: str | None = None,
        owner_name: str | None = None,
    ) -> str:
        """Create the tenant database from the template and return its connection string."""
        ...

    async def delete(self, tenant_id: str, host: str | None = None, port: int | None = None) -> None:
        """Drop the tenant database if it exists."""
        ...

    async def exists(self, tenant_id: str, host: str | None = None, port: int | None = None) -> bool:
        """Check whether the tenant database exists."""
        ...
