"""Chart deployment tool protocol."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class ChartResult:
    """Outcome of one chart tool invocation."""

    success: bool
    output: str = ""
    error: str = ""


@runtime_checkable
class ChartDeployer(Protocol):
    """Protocol for chart-based deployments (helm or a fake)."""

    async def is_available(self) -> bool:
        """Check that the tool can be invoked."""
        ...

    async def install(
        self,
        release: str,
        chart: str,
        namespace: str,
        values: str,
        timeout_seconds: int,
    ) -> ChartResult:
        """Install a release, or upgrade it when it already exists."""
        ...

    async def upgrade(
        self,
        release: str,
        chart: str,
        namespace: str,
        values: str,
        timeout_seconds: int,
    ) -> ChartResult:
        """Upgrade an existing release."""
        ...

    async def uninstall(self, release: str, namespace: str) -> ChartResult:
        """Remove a release."""
        ...

    async def status(self, release: str, namespace: str) -> ChartResult:
        """Report release status."""
        ...

    async def list_releases(self, namespace: str) -> ChartResult:
        """List releases in a namespace."""
        ...
