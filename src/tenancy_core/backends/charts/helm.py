"""Helm CLI chart backend."""

import asyncio
import os
import tempfile
from typing import Any

from tenancy_core.observability import Timer, get_logger
from tenancy_core.protocols.charts import ChartResult

logger = get_logger(__name__)


class HelmChartDeployer:
    """Runs the ``helm`` binary as a subprocess.

    Values documents are written to a temporary file that is removed after
    the command finishes. The subprocess gets a grace period on top of the
    helm ``--timeout`` before it is killed.
    """

    def __init__(
        self,
        binary: str = "helm",
        kubeconfig: str | None = None,
        grace_seconds: int = 30,
        **kwargs: Any,
    ) -> None:
        """Initialize helm deployer.

        Args:
            binary: Path to the helm executable
            kubeconfig: Optional kubeconfig path passed through KUBECONFIG
            grace_seconds: Extra seconds before a hung helm process is killed
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.binary = binary
        self.kubeconfig = kubeconfig
        self.grace_seconds = grace_seconds

    async def _run(self, args: list[str], timeout: float) -> ChartResult:
        env = dict(os.environ)
        if self.kubeconfig:
            env["KUBECONFIG"] = self.kubeconfig

        with Timer() as timer:
            try:
                proc = await asyncio.create_subprocess_exec(
                    self.binary,
                    *args,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=env,
                )
            except OSError as e:
                return ChartResult(success=False, error=f"Failed to start {self.binary}: {e}")

            try:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
            except asyncio.CancelledError:
                if proc.returncode is None:
                    proc.kill()
                    await proc.wait()
                raise
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                return ChartResult(success=False, error=f"helm {args[0]} timed out after {timeout} seconds")

        output = stdout.decode() if stdout else ""
        error = stderr.decode() if stderr else ""
        logger.debug(
            "helm command finished",
            context={"command": args[0], "exit_code": proc.returncode},
            duration_ms=timer.duration_ms,
        )
        return ChartResult(success=proc.returncode == 0, output=output, error=error)

    async def _run_with_values(self, args: list[str], values: str, timeout_seconds: int) -> ChartResult:
        fd, values_path = tempfile.mkstemp(prefix="helm-values-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(values)
            return await self._run(
                [*args, "--values", values_path, "--timeout", f"{timeout_seconds}s", "--wait", "--wait-for-jobs"],
                timeout=timeout_seconds + self.grace_seconds,
            )
        finally:
            os.unlink(values_path)

    async def is_available(self) -> bool:
        """Check ``helm version`` succeeds."""
        result = await self._run(["version", "--short"], timeout=15)
        return result.success

    async def install(
        self,
        release: str,
        chart: str,
        namespace: str,
        values: str,
        timeout_seconds: int,
    ) -> ChartResult:
        """``helm upgrade --install`` creating the namespace if needed."""
        return await self._run_with_values(
            ["upgrade", release, chart, "--install", "--namespace", namespace, "--create-namespace"],
            values,
            timeout_seconds,
        )

    async def upgrade(
        self,
        release: str,
        chart: str,
        namespace: str,
        values: str,
        timeout_seconds: int,
    ) -> ChartResult:
        """``helm upgrade`` an existing release."""
        return await self._run_with_values(
            ["upgrade", release, chart, "--namespace", namespace],
            values,
            timeout_seconds,
        )

    async def uninstall(self, release: str, namespace: str) -> ChartResult:
        return await self._run(["uninstall", release, "--namespace", namespace, "--wait"], timeout=300)

    async def status(self, release: str, namespace: str) -> ChartResult:
        return await self._run(["status", release, "--namespace", namespace, "--output", "json"], timeout=60)

    async def list_releases(self, namespace: str) -> ChartResult:
        return await self._run(["list", "--namespace", namespace, "--output", "json"], timeout=60)
