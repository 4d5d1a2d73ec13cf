"""Tests for the Kubernetes cluster backend."""

import json

import httpx
import pytest

from tenancy_core.backends.cluster.kubernetes import (
    KubernetesClusterClient,
    ingress_from_item,
    ingress_to_item,
    pod_from_item,
)
from tenancy_core.exceptions import ClusterError

INGRESS_ITEM = {
    "metadata": {
        "name": "tenant-acme-ingress",
        "namespace": "tenant-acme",
        "resourceVersion": "42",
        "annotations": {"kubernetes.io/ingress.class": "nginx"},
    },
    "spec": {
        "rules": [{"host": "acme.mechanicbuddy.app", "http": {"paths": [{"path": "/"}]}}],
        "tls": [{"hosts": ["acme.mechanicbuddy.app"], "secretName": "acme-mechanicbuddy-app-tls"}],
    },
}


def make_client(handler, requests: list[httpx.Request] | None = None) -> KubernetesClusterClient:
    def record(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    return KubernetesClusterClient(
        api_url="https://k8s.test",
        token="sa-token",
        transport=httpx.MockTransport(record),
    )


class TestConversions:
    """Tests for API object conversion."""

    def test_pod_from_item(self) -> None:
        pod = pod_from_item({
            "metadata": {"name": "api-0", "labels": {"app.kubernetes.io/component": "api"}},
            "status": {
                "phase": "Running",
                "containerStatuses": [
                    {"ready": True, "restartCount": 1},
                    {"ready": False, "restartCount": 2},
                ],
            },
        })

        assert pod.name == "api-0"
        assert pod.ready_containers == 1
        assert pod.total_containers == 2
        assert pod.restarts == 3
        assert pod.is_ready is False

    def test_pod_without_container_statuses(self) -> None:
        """A pending pod with no statuses is never ready."""
        pod = pod_from_item({"metadata": {"name": "p"}, "status": {"phase": "Pending"}})
        assert pod.total_containers == 0
        assert pod.is_ready is False

    def test_ingress_round_trip(self) -> None:
        ingress = ingress_from_item(INGRESS_ITEM)

        assert ingress.hosts == ["acme.mechanicbuddy.app"]
        assert ingress.resource_version == "42"
        item = ingress_to_item(ingress)
        assert item["metadata"]["resourceVersion"] == "42"
        assert item["spec"] == INGRESS_ITEM["spec"]


class TestKubernetesClusterClient:
    """Tests for KubernetesClusterClient against a mock API server."""

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self) -> None:
        requests: list[httpx.Request] = []
        client = make_client(lambda r: httpx.Response(200, json={"gitVersion": "v1.30.0"}), requests)

        assert await client.is_reachable() is True
        assert requests[0].headers["Authorization"] == "Bearer sa-token"
        assert requests[0].url.path == "/version"

    @pytest.mark.asyncio
    async def test_unreachable(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert await make_client(refuse).is_reachable() is False

    @pytest.mark.asyncio
    async def test_namespace_exists(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/tenant-acme"):
                return httpx.Response(200, json={"metadata": {"name": "tenant-acme"}})
            return httpx.Response(404, json={"message": "not found"})

        client = make_client(handler)

        assert await client.namespace_exists("tenant-acme") is True
        assert await client.namespace_exists("tenant-ghost") is False

    @pytest.mark.asyncio
    async def test_api_error_raises(self) -> None:
        client = make_client(lambda r: httpx.Response(403, json={"message": "forbidden"}))

        with pytest.raises(ClusterError, match="forbidden"):
            await client.namespace_exists("tenant-acme")

    @pytest.mark.asyncio
    async def test_create_namespace_conflict_is_ok(self) -> None:
        requests: list[httpx.Request] = []
        client = make_client(lambda r: httpx.Response(409, json={"message": "already exists"}), requests)

        await client.create_namespace("tenant-acme", {"tenant": "acme"})

        body = json.loads(requests[0].content)
        assert body["metadata"] == {"name": "tenant-acme", "labels": {"tenant": "acme"}}

    @pytest.mark.asyncio
    async def test_delete_namespace(self) -> None:
        client = make_client(lambda r: httpx.Response(404, json={}))
        assert await client.delete_namespace("tenant-ghost") is False

        client = make_client(lambda r: httpx.Response(202, json={}))
        assert await client.delete_namespace("tenant-acme") is True

    @pytest.mark.asyncio
    async def test_scale_deployment_patches_scale(self) -> None:
        requests: list[httpx.Request] = []
        client = make_client(lambda r: httpx.Response(200, json={}), requests)

        await client.scale_deployment("tenant-acme", "tenant-acme-api", 0)

        request = requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/apis/apps/v1/namespaces/tenant-acme/deployments/tenant-acme-api/scale"
        assert request.headers["Content-Type"] == "application/merge-patch+json"
        assert json.loads(request.content) == {"spec": {"replicas": 0}}

    @pytest.mark.asyncio
    async def test_list_pods_with_selector(self) -> None:
        requests: list[httpx.Request] = []
        items = {"items": [{"metadata": {"name": "db-1"}, "status": {"phase": "Running"}}]}
        client = make_client(lambda r: httpx.Response(200, json=items), requests)

        pods = await client.list_pods("tenant-acme", "cnpg.io/cluster")

        assert [pod.name for pod in pods] == ["db-1"]
        assert requests[0].url.params["labelSelector"] == "cnpg.io/cluster"

    @pytest.mark.asyncio
    async def test_list_deployments(self) -> None:
        items = {"items": [{"metadata": {"name": "tenant-acme-api"}}, {"metadata": {"name": "tenant-acme-web"}}]}
        client = make_client(lambda r: httpx.Response(200, json=items))

        assert await client.list_deployments("tenant-acme") == ["tenant-acme-api", "tenant-acme-web"]

    @pytest.mark.asyncio
    async def test_replace_ingress(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json={"items": [INGRESS_ITEM]})
            return httpx.Response(200, json=json.loads(request.content))

        client = make_client(handler, requests)
        ingress = (await client.list_ingresses("tenant-acme"))[0]

        await client.replace_ingress(ingress)

        put = requests[-1]
        assert put.method == "PUT"
        assert put.url.path == "/apis/networking.k8s.io/v1/namespaces/tenant-acme/ingresses/tenant-acme-ingress"
        assert json.loads(put.content)["kind"] == "Ingress"

    @pytest.mark.asyncio
    async def test_replace_ingress_conflict(self) -> None:
        client = make_client(lambda r: httpx.Response(409, json={"message": "the object has been modified"}))

        with pytest.raises(ClusterError, match="has been modified"):
            await client.replace_ingress(ingress_from_item(INGRESS_ITEM))

    @pytest.mark.asyncio
    async def test_secret_round_trip(self) -> None:
        requests: list[httpx.Request] = []
        client = make_client(lambda r: httpx.Response(201 if r.method == "POST" else 404, json={}), requests)

        await client.create_secret("tenant-acme", "db-credentials", {"password": "s3cret"})
        await client.delete_secret("tenant-acme", "db-credentials")

        assert json.loads(requests[0].content)["stringData"] == {"password": "s3cret"}
        assert requests[1].method == "DELETE"
