"""DNS-over-HTTPS resolver backend."""

import re
from typing import Any

import httpx

from tenancy_core.observability import get_logger
from tenancy_core.protocols.resolver import ResolverError

logger = get_logger(__name__)

TXT_RECORD_TYPE = 16
NOERROR = 0
NXDOMAIN = 3
TXT_CHUNK_RE = re.compile(r'"((?:[^"\\]|\\.)*)"')


def parse_txt_data(data: str) -> str:
    """Join the quoted character-strings of one TXT answer."""
    chunks = TXT_CHUNK_RE.findall(data)
    if not chunks:
        return data.strip()
    return "".join(chunk.replace('\\"', '"') for chunk in chunks)


class DohResolver:
    """Resolves TXT records through a JSON DNS-over-HTTPS endpoint.

    Works with any resolver speaking the ``application/dns-json`` format
    (Cloudflare, Google). Also performs the plain HTTPS fetch used by
    file-based domain verification.
    """

    def __init__(
        self,
        url: str = "https://cloudflare-dns.com/dns-query",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize resolver.

        Args:
            url: DoH JSON endpoint
            timeout: Query timeout in seconds
            transport: Optional httpx transport (tests)
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def lookup_txt(self, name: str) -> list[str]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    self.url,
                    params={"name": name, "type": "TXT"},
                    headers={"Accept": "application/dns-json"},
                )
        except httpx.HTTPError as e:
            raise ResolverError(f"DNS query for {name} failed: {e}") from e

        if response.status_code != 200:
            raise ResolverError(f"DNS query for {name} failed with HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ResolverError(f"DNS query for {name} returned a non-JSON body") from e
        if not isinstance(payload, dict):
            raise ResolverError(f"DNS query for {name} returned an unexpected payload")
        status = payload.get("Status", NOERROR)
        if status == NXDOMAIN:
            return []
        if status != NOERROR:
            raise ResolverError(f"DNS query for {name} failed with rcode {status}")

        return [
            parse_txt_data(answer.get("data", ""))
            for answer in payload.get("Answer") or []
            if answer.get("type") == TXT_RECORD_TYPE
        ]

    async def fetch_text(self, url: str, timeout: float) -> str | None:
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Verification file fetch failed", context={"url": url}, error=e)
            return None
        if response.status_code != 200:
            return None
        return response.text
