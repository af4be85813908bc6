"""Google Gemini provider implementation."""

from typing import Any

import httpx

from cardscan_gateway.config.settings import get_settings
from cardscan_gateway.providers.base import GenerativeProvider, UpstreamResponse


class GeminiProvider(GenerativeProvider):
    """Forwards requests to the Gemini generateContent API.

    Transport failures (connect errors, timeouts) are not converted here:
    they propagate to the caller, which only retries on HTTP 429.
    """

    def __init__(self):
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            settings = get_settings()
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.upstream_timeout, connect=settings.upstream_connect_timeout)
            )
        return self._client

    def build_url(self, model_name: str) -> str:
        settings = get_settings()
        base = settings.upstream_base_url.rstrip("/")
        return f"{base}/{settings.upstream_api_version}/models/{model_name}:generateContent"

    async def generate_content(self, model_name: str, payload: Any, api_key: str) -> UpstreamResponse:
        client = await self._get_client()
        response = await client.post(
            self.build_url(model_name),
            params={"key": api_key},
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        return UpstreamResponse(status_code=response.status_code, text=response.text)

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


_provider: GeminiProvider | None = None


def get_provider() -> GeminiProvider:
    """Process-wide provider, so the connection pool is shared across requests."""
    global _provider
    if _provider is None:
        _provider = GeminiProvider()
    return _provider


async def close_provider() -> None:
    global _provider
    if _provider is not None:
        await _provider.close()
        _provider = None
