"""Token metadata resolution (ipfs://, https:// and data: URIs)."""

import base64
import json
import logging
from typing import Any
from urllib.parse import unquote

import httpx

from pledge.core.config import get_settings

logger = logging.getLogger(__name__)

JSON_DATA_PREFIX = "data:application/json"


class MetadataResolver:
    """Fetches token metadata JSON with a bounded timeout.

    Never raises: any failure is logged and reported as None so the read
    path can fall back to placeholders.
    """

    def __init__(
        self,
        gateway_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize metadata resolver.

        Args:
            gateway_url: IPFS HTTP gateway prefix
            timeout: Request timeout in seconds
            http_client: Shared HTTP client (created lazily if not provided)
        """
        settings = get_settings()
        self.gateway_url = gateway_url or settings.ipfs_gateway_url
        self.timeout = timeout or settings.metadata_fetch_timeout
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True
            )
        return self._http_client

    def to_http_url(self, uri: str) -> str:
        """Rewrite ipfs:// URIs onto the configured gateway."""
        if uri.startswith("ipfs://"):
            path = uri[len("ipfs://"):]
            path = path.removeprefix("ipfs/")
            return f"{self.gateway_url.rstrip('/')}/{path}"
        return uri

    def _decode_data_uri(self, uri: str) -> Any:
        header, _, payload = uri.partition(",")
        if header.endswith(";base64"):
            return json.loads(base64.b64decode(payload))
        return json.loads(unquote(payload))

    async def resolve_uri(self, uri: str | None) -> dict[str, Any] | None:
        """Fetch and parse metadata JSON.

        Args:
            uri: Token or campaign metadata URI

        Returns:
            Parsed JSON object, or None when unavailable
        """
        if not uri:
            return None
        try:
            if uri.startswith(JSON_DATA_PREFIX):
                data = self._decode_data_uri(uri)
            else:
                client = await self._get_http_client()
                response = await client.get(self.to_http_url(uri), timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
        except Exception as e:
            logger.warning(f"Metadata fetch failed for {uri}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Metadata at {uri} is not a JSON object")
            return None
        return data

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
