"""In-memory cluster backend."""

import asyncio
from typing import Any

from tenancy_core.exceptions import ClusterError
from tenancy_core.protocols.cluster import Ingress, PodStatus


def matches_selector(labels: dict[str, str], selector: str | None) -> bool:
    """Evaluate an equality-based label selector (``a=b,c``) against labels."""
    if not selector:
        return True
    for term in selector.split(","):
        term = term.strip()
        if not term:
            continue
        if "=" in term:
            key, value = term.split("=", 1)
            if labels.get(key.strip()) != value.strip():
                return False
        elif term not in labels:
            return False
    return True


class MemoryClusterClient:
    """In-memory cluster.

    Suitable for development and testing. Namespaces, deployments, pods,
    secrets and ingresses live in plain dictionaries; every call is recorded
    in ``calls`` so tests can assert on side effects.
    """

    def __init__(self, reachable: bool = True, **kwargs: Any) -> None:
        """Initialize memory cluster.

        Args:
            reachable: Value returned by the reachability probe
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.reachable = reachable
        self.namespaces: dict[str, dict[str, str]] = {}
        self.deployments: dict[str, dict[str, int]] = {}
        self.pods: dict[str, list[PodStatus]] = {}
        self.secrets: dict[str, dict[str, dict[str, str]]] = {}
        self.ingresses: dict[str, dict[str, Ingress]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self._lock = asyncio.Lock()

    def add_pod(self, namespace: str, pod: PodStatus) -> None:
        """Seed a pod into a namespace."""
        self.pods.setdefault(namespace, []).append(pod)

    def add_ingress(self, ingress: Ingress) -> None:
        """Seed an ingress."""
        self.ingresses.setdefault(ingress.namespace, {})[ingress.name] = ingress

    async def is_reachable(self) -> bool:
        self.calls.append(("is_reachable",))
        return self.reachable

    async def namespace_exists(self, namespace: str) -> bool:
        self.calls.append(("namespace_exists", namespace))
        return namespace in self.namespaces

    async def create_namespace(self, namespace: str, labels: dict[str, str] | None = None) -> None:
        self.calls.append(("create_namespace", namespace))
        async with self._lock:
            self.namespaces.setdefault(namespace, dict(labels or {}))

    async def delete_namespace(self, namespace: str) -> bool:
        self.calls.append(("delete_namespace", namespace))
        async with self._lock:
            if namespace not in self.namespaces:
                return False
            del self.namespaces[namespace]
            for store in (self.deployments, self.pods, self.secrets, self.ingresses):
                store.pop(namespace, None)
            return True

    async def list_deployments(self, namespace: str) -> list[str]:
        self.calls.append(("list_deployments", namespace))
        return sorted(self.deployments.get(namespace, {}))

    async def scale_deployment(self, namespace: str, name: str, replicas: int) -> None:
        self.calls.append(("scale_deployment", namespace, name, replicas))
        async with self._lock:
            deployments = self.deployments.get(namespace)
            if deployments is None or name not in deployments:
                raise ClusterError(f"Deployment {namespace}/{name} not found")
            deployments[name] = replicas

    async def list_pods(self, namespace: str, label_selector: str | None = None) -> list[PodStatus]:
        self.calls.append(("list_pods", namespace, label_selector))
        return [
            pod for pod in self.pods.get(namespace, [])
            if matches_selector(pod.labels, label_selector)
        ]

    async def create_secret(self, namespace: str, name: str, data: dict[str, str]) -> None:
        self.calls.append(("create_secret", namespace, name))
        self.secrets.setdefault(namespace, {})[name] = dict(data)

    async def delete_secret(self, namespace: str, name: str) -> None:
        self.calls.append(("delete_secret", namespace, name))
        self.secrets.get(namespace, {}).pop(name, None)

    async def list_ingresses(self, namespace: str) -> list[Ingress]:
        self.calls.append(("list_ingresses", namespace))
        return list(self.ingresses.get(namespace, {}).values())

    async def replace_ingress(self, ingress: Ingress) -> None:
        self.calls.append(("replace_ingress", ingress.namespace, ingress.name))
        if ingress.name not in self.ingresses.get(ingress.namespace, {}):
            raise ClusterError(f"Ingress {ingress.namespace}/{ingress.name} not found")
        self.ingresses[ingress.namespace][ingress.name] = ingress
