"""Outbound resolver protocol used by domain verification."""

from typing import Protocol, runtime_checkable


class ResolverError(Exception):
    """Lookup could not be completed (as opposed to returning no records)."""

    pass


@runtime_checkable
class Resolver(Protocol):
    """TXT lookups and plain HTTPS fetches against customer domains."""

    async def lookup_txt(self, name: str) -> list[str]:
        """Return TXT values at ``name``; empty when no record exists.

        Raises:
            ResolverError: If the query itself failed
        """
        ...

    async def fetch_text(self, url: str, timeout: float) -> str | None:
        """GET ``url`` and return the body, or None on any non-200 outcome."""
        ...
