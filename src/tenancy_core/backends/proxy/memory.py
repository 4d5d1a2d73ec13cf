"""In-memory reverse proxy backend."""

from typing import Any

from tenancy_core.protocols.proxy import ForwardTarget


class MemoryProxyClient:
    """Keeps proxy hosts in a dictionary keyed by domain.

    Suitable for development and testing.
    """

    def __init__(
        self,
        base_domain: str = "mechanicbuddy.app",
        forward_host: str = "127.0.0.1",
        forward_port: int = 8080,
        **kwargs: Any,
    ) -> None:
        """Initialize memory proxy.

        Args:
            base_domain: Domain under which tenant subdomains live
            forward_host: Default upstream host
            forward_port: Default upstream port
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.base_domain = base_domain
        self.default_target = ForwardTarget(host=forward_host, port=int(forward_port))
        self.hosts: dict[str, ForwardTarget] = {}
        self.custom_domains: dict[str, str] = {}
        self.calls: list[tuple[Any, ...]] = []

    async def create_tenant_host(self, tenant_id: str, target: ForwardTarget | None = None) -> None:
        domain = f"{tenant_id}.{self.base_domain}"
        self.calls.append(("create_tenant_host", domain, target))
        self.hosts.setdefault(domain, target or self.default_target)

    async def delete_tenant_host(self, tenant_id: str) -> None:
        domain = f"{tenant_id}.{self.base_domain}"
        self.calls.append(("delete_tenant_host", domain))
        self.hosts.pop(domain, None)

    async def create_custom_domain_host(self, tenant_id: str, domain: str) -> None:
        self.calls.append(("create_custom_domain_host", tenant_id, domain))
        self.hosts.setdefault(domain, self.default_target)
        self.custom_domains[domain] = tenant_id

    async def delete_custom_domain_host(self, domain: str) -> None:
        self.calls.append(("delete_custom_domain_host", domain))
        self.hosts.pop(domain, None)
        self.custom_domains.pop(domain, None)
