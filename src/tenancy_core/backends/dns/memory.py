"""In-memory DNS registrar backend."""

from typing import Any


class MemoryDnsRegistrar:
    """Keeps CNAME records in a dictionary. Suitable for development and testing."""

    def __init__(self, base_domain: str = "mechanicbuddy.app", **kwargs: Any) -> None:
        self.base_domain = base_domain
        self.records: dict[str, str] = {}

    async def create_record(self, subdomain: str, target: str | None = None) -> None:
        self.records.setdefault(subdomain, target or self.base_domain)

    async def delete_record(self, subdomain: str) -> None:
        self.records.pop(subdomain, None)

    async def record_exists(self, subdomain: str) -> bool:
        return subdomain in self.records
