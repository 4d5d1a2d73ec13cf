"""In-memory chart backend."""

import json
from typing import Any

import yaml

from tenancy_core.backends.cluster.memory import MemoryClusterClient
from tenancy_core.protocols.charts import ChartResult
from tenancy_core.protocols.cluster import Ingress, IngressRule, IngressTls, PodStatus


class MemoryChartDeployer:
    """Records chart operations instead of running helm.

    When given a :class:`MemoryClusterClient`, an install materializes what
    the tenant chart would create: the namespace, ``api``/``web`` deployments
    with ready pods, database pods and an ingress for the default host.
    """

    def __init__(
        self,
        cluster: MemoryClusterClient | None = None,
        available: bool = True,
        fail_install: bool = False,
        **kwargs: Any,
    ) -> None:
        """Initialize memory chart deployer.

        Args:
            cluster: Optional in-memory cluster to materialize workloads into
            available: Value returned by the availability probe
            fail_install: Make install/upgrade report failure
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.cluster = cluster
        self.available = available
        self.fail_install = fail_install
        self.releases: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[tuple[Any, ...]] = []

    @property
    def deploy_calls(self) -> list[tuple[Any, ...]]:
        """Install and upgrade calls only."""
        return [call for call in self.calls if call[0] in ("install", "upgrade")]

    def _materialize(self, release: str, namespace: str, values: dict[str, Any]) -> None:
        if self.cluster is None:
            return
        cluster = self.cluster
        tenant_id = values.get("tenant", {}).get("id", release)
        cluster.namespaces.setdefault(namespace, {"tenant": tenant_id})

        deployments = cluster.deployments.setdefault(namespace, {})
        cluster.pods[namespace] = []
        for component in ("api", "web"):
            replicas = int(values.get(component, {}).get("replicas", 1))
            name = f"{release}-{component}"
            deployments[name] = replicas
            for index in range(replicas):
                cluster.add_pod(namespace, PodStatus(
                    name=f"{name}-{index}",
                    phase="Running",
                    ready_containers=1,
                    total_containers=1,
                    labels={"app.kubernetes.io/component": component},
                ))

        instances = int(values.get("postgresql", {}).get("instances", 1))
        for index in range(instances):
            cluster.add_pod(namespace, PodStatus(
                name=f"{release}-postgres-{index + 1}",
                phase="Running",
                ready_containers=1,
                total_containers=1,
                labels={"cnpg.io/cluster": f"{release}-postgres"},
            ))

        domains = values.get("domains", {})
        hosts = [domains.get("default")] if domains.get("default") else []
        hosts += [h for h in domains.get("custom", []) if h not in hosts]
        cluster.add_ingress(Ingress(
            name=f"{release}-ingress",
            namespace=namespace,
            rules=[IngressRule(host=host, http={"paths": [{"path": "/"}]}) for host in hosts],
            tls=[IngressTls(hosts=[host], secret_name=f"{host.replace('.', '-')}-tls") for host in hosts],
        ))

    async def is_available(self) -> bool:
        self.calls.append(("is_available",))
        return self.available

    async def install(
        self,
        release: str,
        chart: str,
        namespace: str,
        values: str,
        timeout_seconds: int,
    ) -> ChartResult:
        self.calls.append(("install", release, chart, namespace, timeout_seconds))
        if self.fail_install:
            return ChartResult(success=False, error=f"Error: INSTALLATION FAILED: {release}")
        parsed = yaml.safe_load(values) or {}
        self.releases[(namespace, release)] = parsed
        self._materialize(release, namespace, parsed)
        return ChartResult(success=True, output=f"Release \"{release}\" has been upgraded. Happy Helming!")

    async def upgrade(
        self,
        release: str,
        chart: str,
        namespace: str,
        values: str,
        timeout_seconds: int,
    ) -> ChartResult:
        self.calls.append(("upgrade", release, chart, namespace, timeout_seconds))
        if self.fail_install:
            return ChartResult(success=False, error=f"Error: UPGRADE FAILED: {release}")
        if (namespace, release) not in self.releases:
            return ChartResult(success=False, error=f"Error: UPGRADE FAILED: \"{release}\" has no deployed releases")
        self.releases[(namespace, release)] = yaml.safe_load(values) or {}
        return ChartResult(success=True, output=f"Release \"{release}\" has been upgraded.")

    async def uninstall(self, release: str, namespace: str) -> ChartResult:
        self.calls.append(("uninstall", release, namespace))
        if self.releases.pop((namespace, release), None) is None:
            return ChartResult(success=False, error=f"Error: uninstall: Release not loaded: {release}: release: not found")
        return ChartResult(success=True, output=f"release \"{release}\" uninstalled")

    async def status(self, release: str, namespace: str) -> ChartResult:
        self.calls.append(("status", release, namespace))
        if (namespace, release) not in self.releases:
            return ChartResult(success=False, error="Error: release: not found")
        return ChartResult(success=True, output='{"info": {"status": "deployed"}}')

    async def list_releases(self, namespace: str) -> ChartResult:
        self.calls.append(("list_releases", namespace))
        names = [release for ns, release in self.releases if ns == namespace]
        return ChartResult(success=True, output=json.dumps([{"name": name, "namespace": namespace} for name in names]))
