"""Container orchestration cluster protocol."""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class PodStatus:
    """Observed state of one pod."""

    name: str
    phase: str
    ready_containers: int
    total_containers: int
    restarts: int = 0
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def is_ready(self) -> bool:
        """A pod is ready when it is running and every container reports ready."""
        return (
            self.phase == "Running"
            and self.total_containers > 0
            and self.ready_containers == self.total_containers
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "phase": self.phase,
            "ready": f"{self.ready_containers}/{self.total_containers}",
            "is_ready": self.is_ready,
            "restarts": self.restarts,
        }


@dataclass
class IngressRule:
    """One host routing rule. ``http`` is the backend path spec, kept opaque."""

    host: str
    http: dict[str, Any] = field(default_factory=dict)


@dataclass
class IngressTls:
    """TLS termination entry."""

    hosts: list[str]
    secret_name: str


@dataclass
class Ingress:
    """Routing rule set for a namespace."""

    name: str
    namespace: str
    rules: list[IngressRule] = field(default_factory=list)
    tls: list[IngressTls] = field(default_factory=list)
    annotations: dict[str, str] = field(default_factory=dict)
    resource_version: str | None = None

    @property
    def hosts(self) -> list[str]:
        """Hosts routed by this ingress, in rule order."""
        return [rule.host for rule in self.rules if rule.host]


@runtime_checkable
class ClusterClient(Protocol):
    """Protocol for the cluster API (namespaces, deployments, pods, secrets, ingresses)."""

    async def is_reachable(self) -> bool:
        """Probe that the API server answers."""
        ...

    async def namespace_exists(self, namespace: str) -> bool:
        """Check whether a namespace exists."""
        ...

    async def create_namespace(self, namespace: str, labels: dict[str, str] | None = None) -> None:
        """Create a namespace if absent."""
        ...

    async def delete_namespace(self, namespace: str) -> bool:
        """Delete a namespace. Returns False when it did not exist."""
        ...

    async def list_deployments(self, namespace: str) -> list[str]:
        """Names of all deployments in the namespace."""
        ...

    async def scale_deployment(self, namespace: str, name: str, replicas: int) -> None:
        """Set the replica count of a deployment."""
        ...

    async def list_pods(self, namespace: str, label_selector: str | None = None) -> list[PodStatus]:
        """List pods, optionally filtered by a label selector."""
        ...

    async def create_secret(self, namespace: str, name: str, data: dict[str, str]) -> None:
        """Create an opaque secret."""
        ...

    async def delete_secret(self, namespace: str, name: str) -> None:
        """Delete a secret if present."""
        ...

    async def list_ingresses(self, namespace: str) -> list[Ingress]:
        """List ingresses in a namespace."""
        ...

    async def replace_ingress(self, ingress: Ingress) -> None:
        """Replace an ingress definition wholesale."""
        ...
