"""Cloudflare DNS registrar backend."""

from typing import Any

import httpx

from tenancy_core.exceptions import DnsError
from tenancy_core.observability import get_logger

logger = get_logger(__name__)


def _cloudflare_error(response: httpx.Response) -> str:
    try:
        return response.json().get("errors", [{}])[0].get("message", "Unknown error")
    except (ValueError, IndexError):
        return response.text


class CloudflareDnsRegistrar:
    """Manages tenant CNAME records in a Cloudflare zone."""

    def __init__(
        self,
        zone_id: str | None = None,
        api_token: str | None = None,
        base_domain: str = "mechanicbuddy.app",
        default_target: str | None = None,
        proxied: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the registrar.

        Args:
            zone_id: Cloudflare zone of ``base_domain``
            api_token: API token with DNS edit permission
            base_domain: Domain the tenant subdomains live under
            default_target: CNAME target when none is given (defaults to ``base_domain``)
            proxied: Whether records go through the Cloudflare proxy
            transport: Optional httpx transport (tests)
            **kwargs: Ignored (for compatibility with other backends)

        Raises:
            ValueError: If required Cloudflare config is missing
        """
        if not zone_id:
            raise ValueError("Cloudflare zone_id is required for cloudflare dns backend")
        if not api_token:
            raise ValueError("Cloudflare api_token is required for cloudflare dns backend")

        self.zone_id = zone_id
        self.api_token = api_token
        self.base_domain = base_domain
        self.default_target = default_target or base_domain
        self.proxied = proxied
        self.base_url = "https://api.cloudflare.com/client/v4"
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        """Get API request headers."""
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=self._headers(), timeout=30.0, transport=self._transport)

    def _fqdn(self, subdomain: str) -> str:
        return f"{subdomain}.{self.base_domain}"

    async def _find_record(self, client: httpx.AsyncClient, subdomain: str) -> dict[str, Any] | None:
        response = await client.get(
            f"{self.base_url}/zones/{self.zone_id}/dns_records",
            params={"type": "CNAME", "name": self._fqdn(subdomain)},
        )
        if response.status_code != 200:
            raise DnsError(f"Failed to query DNS records: {_cloudflare_error(response)}")
        records = response.json().get("result") or []
        return records[0] if records else None

    async def create_record(self, subdomain: str, target: str | None = None) -> None:
        """Create a CNAME for the subdomain unless one exists."""
        async with self._client() as client:
            if await self._find_record(client, subdomain) is not None:
                logger.info("DNS record already exists", context={"name": self._fqdn(subdomain)})
                return
            response = await client.post(
                f"{self.base_url}/zones/{self.zone_id}/dns_records",
                json={
                    "type": "CNAME",
                    "name": subdomain,
                    "content": target or self.default_target,
                    "proxied": self.proxied,
                },
            )
        if response.status_code not in (200, 201):
            raise DnsError(f"Failed to create DNS record: {_cloudflare_error(response)}")
        logger.info("DNS record created", context={"name": self._fqdn(subdomain)})

    async def delete_record(self, subdomain: str) -> None:
        """Delete the subdomain's CNAME when present."""
        async with self._client() as client:
            record = await self._find_record(client, subdomain)
            if record is None:
                return
            response = await client.delete(
                f"{self.base_url}/zones/{self.zone_id}/dns_records/{record['id']}"
            )
        if response.status_code != 200:
            raise DnsError(f"Failed to delete DNS record: {_cloudflare_error(response)}")
        logger.info("DNS record deleted", context={"name": self._fqdn(subdomain)})

    async def record_exists(self, subdomain: str) -> bool:
        async with self._client() as client:
            return await self._find_record(client, subdomain) is not None
