"""Kubernetes cluster backend speaking the REST API over httpx."""

from pathlib import Path
from typing import Any

import httpx

from tenancy_core.exceptions import ClusterError
from tenancy_core.observability import get_logger
from tenancy_core.protocols.cluster import Ingress, IngressRule, IngressTls, PodStatus

logger = get_logger(__name__)

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message", response.text)
    except ValueError:
        return response.text


def pod_from_item(item: dict[str, Any]) -> PodStatus:
    """Build a PodStatus from a v1 Pod object."""
    metadata = item.get("metadata", {})
    status = item.get("status", {})
    containers = status.get("containerStatuses") or []
    return PodStatus(
        name=metadata.get("name", ""),
        phase=status.get("phase", "Unknown"),
        ready_containers=sum(1 for c in containers if c.get("ready")),
        total_containers=len(containers),
        restarts=sum(c.get("restartCount", 0) for c in containers),
        labels=metadata.get("labels") or {},
    )


def ingress_from_item(item: dict[str, Any]) -> Ingress:
    """Build an Ingress from a networking.k8s.io/v1 Ingress object."""
    metadata = item.get("metadata", {})
    spec = item.get("spec", {})
    return Ingress(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        rules=[
            IngressRule(host=rule.get("host", ""), http=rule.get("http") or {})
            for rule in spec.get("rules") or []
        ],
        tls=[
            IngressTls(hosts=list(tls.get("hosts") or []), secret_name=tls.get("secretName", ""))
            for tls in spec.get("tls") or []
        ],
        annotations=dict(metadata.get("annotations") or {}),
        resource_version=metadata.get("resourceVersion"),
    )


def ingress_to_item(ingress: Ingress) -> dict[str, Any]:
    """Serialize an Ingress back to its API representation."""
    metadata: dict[str, Any] = {
        "name": ingress.name,
        "namespace": ingress.namespace,
        "annotations": ingress.annotations,
    }
    if ingress.resource_version:
        metadata["resourceVersion"] = ingress.resource_version
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": metadata,
        "spec": {
            "rules": [{"host": rule.host, "http": rule.http} for rule in ingress.rules],
            "tls": [{"hosts": tls.hosts, "secretName": tls.secret_name} for tls in ingress.tls],
        },
    }


class KubernetesClusterClient:
    """Cluster client for the Kubernetes API server.

    Inside a pod the service account token and CA bundle are picked up
    automatically. Outside, pass ``api_url`` and ``token`` explicitly.
    """

    def __init__(
        self,
        api_url: str = "https://kubernetes.default.svc",
        token: str | None = None,
        ca_path: str | None = None,
        verify: bool = True,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the client.

        Args:
            api_url: API server base URL
            token: Bearer token (read from the service account when omitted)
            ca_path: CA bundle for TLS verification
            verify: Whether to verify TLS at all
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests)
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.api_url = api_url.rstrip("/")
        if token is None:
            token_file = SERVICE_ACCOUNT_DIR / "token"
            token = token_file.read_text().strip() if token_file.exists() else None
        self.token = token
        if ca_path is None and (SERVICE_ACCOUNT_DIR / "ca.crt").exists():
            ca_path = str(SERVICE_ACCOUNT_DIR / "ca.crt")
        self.verify: bool | str = ca_path if (verify and ca_path) else verify
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        """Get API request headers."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers=self._headers(),
            verify=self.verify,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def is_reachable(self) -> bool:
        """Probe the API server version endpoint."""
        try:
            async with self._client() as client:
                response = await client.get("/version")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Cluster API not reachable", error=e)
            return False

    async def namespace_exists(self, namespace: str) -> bool:
        """Check whether a namespace exists."""
        async with self._client() as client:
            response = await client.get(f"/api/v1/namespaces/{namespace}")
        if response.status_code == 404:
            return False
        if response.status_code != 200:
            raise ClusterError(f"Failed to read namespace {namespace}: {_error_message(response)}")
        return True

    async def create_namespace(self, namespace: str, labels: dict[str, str] | None = None) -> None:
        """Create a namespace; an existing one is left untouched."""
        body = {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": namespace, "labels": labels or {}}}
        async with self._client() as client:
            response = await client.post("/api/v1/namespaces", json=body)
        if response.status_code == 409:
            return
        if response.status_code not in (200, 201):
            raise ClusterError(f"Failed to create namespace {namespace}: {_error_message(response)}")

    async def delete_namespace(self, namespace: str) -> bool:
        """Delete a namespace. Returns False when it did not exist."""
        async with self._client() as client:
            response = await client.delete(f"/api/v1/namespaces/{namespace}")
        if response.status_code == 404:
            return False
        if response.status_code not in (200, 202):
            raise ClusterError(f"Failed to delete namespace {namespace}: {_error_message(response)}")
        return True

    async def list_deployments(self, namespace: str) -> list[str]:
        """Names of all deployments in the namespace."""
        async with self._client() as client:
            response = await client.get(f"/apis/apps/v1/namespaces/{namespace}/deployments")
        if response.status_code != 200:
            raise ClusterError(f"Failed to list deployments in {namespace}: {_error_message(response)}")
        return [item["metadata"]["name"] for item in response.json().get("items", [])]

    async def scale_deployment(self, namespace: str, name: str, replicas: int) -> None:
        """Patch the scale subresource of a deployment."""
        async with self._client() as client:
            response = await client.patch(
                f"/apis/apps/v1/namespaces/{namespace}/deployments/{name}/scale",
                json={"spec": {"replicas": replicas}},
                headers={"Content-Type": "application/merge-patch+json"},
            )
        if response.status_code != 200:
            raise ClusterError(f"Failed to scale {namespace}/{name}: {_error_message(response)}")

    async def list_pods(self, namespace: str, label_selector: str | None = None) -> list[PodStatus]:
        """List pods, optionally filtered by a label selector."""
        params = {"labelSelector": label_selector} if label_selector else None
        async with self._client() as client:
            response = await client.get(f"/api/v1/namespaces/{namespace}/pods", params=params)
        if response.status_code == 404:
            return []
        if response.status_code != 200:
            raise ClusterError(f"Failed to list pods in {namespace}: {_error_message(response)}")
        return [pod_from_item(item) for item in response.json().get("items", [])]

    async def create_secret(self, namespace: str, name: str, data: dict[str, str]) -> None:
        """Create an opaque secret from plain string data."""
        body = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": name, "namespace": namespace},
            "type": "Opaque",
            "stringData": data,
        }
        async with self._client() as client:
            response = await client.post(f"/api/v1/namespaces/{namespace}/secrets", json=body)
        if response.status_code not in (200, 201):
            raise ClusterError(f"Failed to create secret {namespace}/{name}: {_error_message(response)}")

    async def delete_secret(self, namespace: str, name: str) -> None:
        """Delete a secret if present."""
        async with self._client() as client:
            response = await client.delete(f"/api/v1/namespaces/{namespace}/secrets/{name}")
        if response.status_code not in (200, 202, 404):
            raise ClusterError(f"Failed to delete secret {namespace}/{name}: {_error_message(response)}")

    async def list_ingresses(self, namespace: str) -> list[Ingress]:
        """List ingresses in a namespace."""
        async with self._client() as client:
            response = await client.get(f"/apis/networking.k8s.io/v1/namespaces/{namespace}/ingresses")
        if response.status_code == 404:
            return []
        if response.status_code != 200:
            raise ClusterError(f"Failed to list ingresses in {namespace}: {_error_message(response)}")
        return [ingress_from_item(item) for item in response.json().get("items", [])]

    async def replace_ingress(self, ingress: Ingress) -> None:
        """PUT the full ingress definition."""
        async with self._client() as client:
            response = await client.put(
                f"/apis/networking.k8s.io/v1/namespaces/{ingress.namespace}/ingresses/{ingress.name}",
                json=ingress_to_item(ingress),
            )
        if response.status_code != 200:
            raise ClusterError(
                f"Failed to replace ingress {ingress.namespace}/{ingress.name}: {_error_message(response)}"
            )
