"""HTTP client for the zapper-info resolution service.

The service takes an LNURL-pay endpoint URL, fetches its LUD-06 metadata
and returns it as JSON:

    {"allowsNostr": true, "nostrPubkey": "<hex>", "callback": "...",
     "minSendable": 1000, "maxSendable": 100000000}

A persistent httpx.AsyncClient is kept for connection pooling.
"""

from __future__ import annotations

import logging

import httpx

log = logging.getLogger(__name__)


class ZapperInfoClient:
    """Resolves LNURL-pay endpoints through the zapper-info service."""

    def __init__(self, base_url: str, timeout: float = 15.0) -> None:
        self._base_url: str = base_url.rstrip("/")
        self._timeout: float = timeout
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        """Create the persistent httpx.AsyncClient."""
        self._client = httpx.AsyncClient(timeout=self._timeout)

    async def close(self) -> None:
        """Close the httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ZapperInfoClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def fetch_zapper_info(self, lnurl: str) -> dict:
        """POST /zapper/info. Returns the parsed JSON object.

        Raises RuntimeError if not started, httpx.HTTPError on transport or
        status errors, ValueError if the body is not a JSON object.
        """
        if self._client is None:
            raise RuntimeError(
                "ZapperInfoClient not started. Call await client.start() first."
            )

        url = self._base_url + "/zapper/info"
        resp = await self._client.post(url, json={"lnurl": lnurl})
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected zapper info payload for {lnurl}")
        log.debug("Zapper info for %s: allowsNostr=%s", lnurl, data.get("allowsNostr"))
        return data
