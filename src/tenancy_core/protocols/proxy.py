"""Reverse proxy protocol."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ForwardTarget:
    """Upstream that a proxy host forwards to."""

    host: str
    port: int
    scheme: str = "http"


@runtime_checkable
class ProxyClient(Protocol):
    """Protocol for the reverse proxy routing tenant hostnames.

    Create operations are idempotent: an existing host for the same domain
    is left in place.
    """

    async def create_tenant_host(self, tenant_id: str, target: ForwardTarget | None = None) -> None:
        """Route ``{tenant_id}.{base_domain}`` to ``target`` (or the default upstream)."""
        ...

    async def delete_tenant_host(self, tenant_id: str) -> None:
        """Remove the tenant subdomain host."""
        ...

    async def create_custom_domain_host(self, tenant_id: str, domain: str) -> None:
        """Route a verified custom domain, requesting a certificate for it."""
        ...

    async def delete_custom_domain_host(self, domain: str) -> None:
        """Remove a custom domain host."""
        ...
