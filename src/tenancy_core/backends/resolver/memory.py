"""In-memory resolver backend."""

from typing import Any

from tenancy_core.protocols.resolver import ResolverError


class MemoryResolver:
    """Serves TXT records and files from dictionaries. Suitable for testing."""

    def __init__(self, **kwargs: Any) -> None:
        self.txt_records: dict[str, list[str]] = {}
        self.files: dict[str, str] = {}
        self.failing_names: set[str] = set()
        self.lookups: list[str] = []

    async def lookup_txt(self, name: str) -> list[str]:
        self.lookups.append(name)
        if name in self.failing_names:
            raise ResolverError(f"DNS query for {name} failed: SERVFAIL")
        return list(self.txt_records.get(name, []))

    async def fetch_text(self, url: str, timeout: float) -> str | None:
        self.lookups.append(url)
        return self.files.get(url)
