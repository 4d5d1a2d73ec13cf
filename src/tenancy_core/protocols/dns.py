"""DNS registrar protocol."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class DnsRegistrar(Protocol):
    """Manages the CNAME record of a tenant subdomain."""

    async def create_record(self, subdomain: str, target: str | None = None) -> None:
        """Create a CNAME for ``subdomain`` if absent."""
        ...

    async def delete_record(self, subdomain: str) -> None:
        """Delete the CNAME for ``subdomain`` if present."""
        ...

    async def record_exists(self, subdomain: str) -> bool:
        """Check whether a record exists."""
        ...
