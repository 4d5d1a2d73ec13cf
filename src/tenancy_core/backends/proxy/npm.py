"""Nginx Proxy Manager backend."""

import time
from typing import Any

import httpx

from tenancy_core.exceptions import ProxyError
from tenancy_core.observability import get_logger
from tenancy_core.protocols.proxy import ForwardTarget

logger = get_logger(__name__)

TOKEN_TTL_SECONDS = 3600


class NpmProxyClient:
    """Proxy client for the Nginx Proxy Manager REST API.

    Tenant subdomains reuse a wildcard certificate when one is configured.
    Custom domains request a fresh Let's Encrypt certificate.
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        password: str,
        base_domain: str = "mechanicbuddy.app",
        forward_host: str = "192.168.1.100",
        forward_port: int = 31840,
        wildcard_certificate_id: int = 0,
        letsencrypt_email: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Proxy manager URL, e.g. ``http://npm:81``
            email: Login identity
            password: Login secret
            base_domain: Domain under which tenant subdomains live
            forward_host: Default upstream host
            forward_port: Default upstream port
            wildcard_certificate_id: Certificate for ``*.base_domain`` (0 disables TLS)
            letsencrypt_email: Contact for custom-domain certificates
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests)
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.base_url = base_url.rstrip("/")
        self.email = email
        self.password = password
        self.base_domain = base_domain
        self.default_target = ForwardTarget(host=forward_host, port=int(forward_port))
        self.wildcard_certificate_id = int(wildcard_certificate_id)
        self.letsencrypt_email = letsencrypt_email or email
        self.timeout = timeout
        self._transport = transport
        self._token: str | None = None
        self._token_expiry: float = 0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def _headers(self, client: httpx.AsyncClient) -> dict[str, str]:
        """Bearer headers, logging in when the cached token is stale."""
        if self._token is None or time.time() >= self._token_expiry:
            response = await client.post(
                "/api/tokens",
                json={"identity": self.email, "secret": self.password},
            )
            if response.status_code != 200:
                raise ProxyError(f"Proxy manager authentication failed: {response.text}")
            self._token = response.json().get("token")
            self._token_expiry = time.time() + TOKEN_TTL_SECONDS
        return {"Authorization": f"Bearer {self._token}", "Content-Type": "application/json"}

    async def _find_host(self, client: httpx.AsyncClient, domain: str) -> dict[str, Any] | None:
        response = await client.get("/api/nginx/proxy-hosts", headers=await self._headers(client))
        if response.status_code != 200:
            raise ProxyError(f"Failed to list proxy hosts: {response.text}")
        for host in response.json():
            if domain in (host.get("domain_names") or []):
                return host
        return None

    async def _create_host(self, domain: str, body: dict[str, Any]) -> None:
        async with self._client() as client:
            existing = await self._find_host(client, domain)
            if existing is not None:
                logger.info("Proxy host already exists", context={"domain": domain, "id": existing.get("id")})
                return
            response = await client.post(
                "/api/nginx/proxy-hosts",
                headers=await self._headers(client),
                json=body,
            )
        if response.status_code not in (200, 201):
            raise ProxyError(f"Failed to create proxy host for {domain}: {response.text}")
        logger.info("Proxy host created", context={"domain": domain})

    async def _delete_host(self, domain: str) -> None:
        async with self._client() as client:
            existing = await self._find_host(client, domain)
            if existing is None:
                logger.warning("Proxy host not found, nothing to delete", context={"domain": domain})
                return
            response = await client.delete(
                f"/api/nginx/proxy-hosts/{existing['id']}",
                headers=await self._headers(client),
            )
        if response.status_code not in (200, 204):
            raise ProxyError(f"Failed to delete proxy host for {domain}: {response.text}")
        logger.info("Proxy host deleted", context={"domain": domain})

    def _host_body(self, domain: str, target: ForwardTarget) -> dict[str, Any]:
        return {
            "domain_names": [domain],
            "forward_scheme": target.scheme,
            "forward_host": target.host,
            "forward_port": target.port,
            "http2_support": True,
            "block_exploits": True,
            "allow_websocket_upgrade": True,
            "access_list_id": 0,
            "locations": [],
        }

    async def create_tenant_host(self, tenant_id: str, target: ForwardTarget | None = None) -> None:
        domain = f"{tenant_id}.{self.base_domain}"
        body = self._host_body(domain, target or self.default_target)
        if self.wildcard_certificate_id > 0:
            body["certificate_id"] = self.wildcard_certificate_id
            body["ssl_forced"] = True
        else:
            body["ssl_forced"] = False
        body["meta"] = {"letsencrypt_agree": False, "dns_challenge": False}
        await self._create_host(domain, body)

    async def delete_tenant_host(self, tenant_id: str) -> None:
        await self._delete_host(f"{tenant_id}.{self.base_domain}")

    async def create_custom_domain_host(self, tenant_id: str, domain: str) -> None:
        body = self._host_body(domain, self.default_target)
        body["certificate_id"] = "new"
        body["ssl_forced"] = True
        body["meta"] = {
            "letsencrypt_agree": True,
            "letsencrypt_email": self.letsencrypt_email,
            "dns_challenge": False,
        }
        await self._create_host(domain, body)

    async def delete_custom_domain_host(self, domain: str) -> None:
        await self._delete_host(domain)
