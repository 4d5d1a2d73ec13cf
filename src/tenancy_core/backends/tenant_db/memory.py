"""In-memory tenant database provisioner."""

from typing import Any


class MemoryTenantDatabaseProvisioner:
    """Tracks tenant databases per (host, port) in a dictionary.

    Suitable for development and testing.
    """

    def __init__(self, host: str = "localhost", port: int = 5432, **kwargs: Any) -> None:
        """Initialize memory provisioner.

        Args:
            host: Default server host
            port: Default server port
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.host = host
        self.port = int(port)
        self.databases: dict[tuple[str, int, str], dict[str, Any]] = {}
        self.calls: list[tuple[Any, ...]] = []

    def _key(self, tenant_id: str, host: str | None, port: int | None) -> tuple[str, int, str]:
        return (host or self.host, int(port or self.port), tenant_id)

    async def provision(
        self,
        tenant_id: str,
        host: str | None = None,
        port: int | None = None,
        owner_email: str | None = None,
        owner_name: str | None = None,
    ) -> str:
        key = self._key(tenant_id, host, port)
        self.calls.append(("provision", *key))
        self.databases.setdefault(key, {"owner_email": owner_email, "owner_name": owner_name})
        return f"postgresql://tenant@{key[0]}:{key[1]}/tenant_{tenant_id.replace('-', '_')}"

    async def delete(self, tenant_id: str, host: str | None = None, port: int | None = None) -> None:
        key = self._key(tenant_id, host, port)
        self.calls.append(("delete", *key))
        self.databases.pop(key, None)

    async def exists(self, tenant_id: str, host: str | None = None, port: int | None = None) -> bool:
        key = self._key(tenant_id, host, port)
        self.calls.append(("exists", *key))
        return key in self.databases
