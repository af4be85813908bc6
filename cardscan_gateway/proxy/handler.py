"""Rotating-key forwarding proxy.

Forwards an opaque generateContent payload upstream with one pooled API key
per attempt. A 429 from upstream rotates to the next key and retries after
a short backoff; any other response is handed back to the caller as-is.
"""

import asyncio
import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from cardscan_gateway.config.settings import get_settings
from cardscan_gateway.logging.audit import get_audit_logger
from cardscan_gateway.providers.base import GenerativeProvider
from cardscan_gateway.providers.gemini import close_provider, get_provider
from cardscan_gateway.proxy.rotation import backoff_delay, choose_start_index, key_index

RATE_LIMITED = 429

BAD_REQUEST_MESSAGE = "Bad Request: Missing modelName or body"
CONFIG_ERROR_MESSAGE = "Server Configuration Error: API Keys not set"
EXHAUSTED_MESSAGE = "All API keys are rate limited."


@dataclass
class ProxyResult:
    status_code: int
    body: str  # Serialized JSON text returned to the caller unchanged


def error_result(status_code: int, message: str, **extra: Any) -> ProxyResult:
    return ProxyResult(status_code=status_code, body=json.dumps({"error": message, **extra}))


async def forward_with_rotation(
    model_name: str,
    payload: Any,
    api_keys: Sequence[str],
    provider: GenerativeProvider,
    *,
    max_retries: int = 2,
    retry_delays_ms: Sequence[int] = (500, 1500),
    default_retry_delay_ms: int = 1000,
) -> ProxyResult:
    """Forward ``payload`` upstream, rotating keys on rate limiting.

    Makes at most ``max_retries + 1`` upstream calls. Attempt n uses key
    ``(start + n) % len(api_keys)`` where ``start`` is random per call.
    Transport errors from the provider are not retried and propagate.
    """
    logger = get_audit_logger()
    pool_size = len(api_keys)
    start = choose_start_index(pool_size)
    rotations = 0  # Advanced only on 429, so it always equals the attempt number

    for attempt in range(max_retries + 1):
        if attempt > 0:
            await asyncio.sleep(backoff_delay(attempt, retry_delays_ms, default_retry_delay_ms))

        index = key_index(start, rotations, pool_size)
        response = await provider.generate_content(model_name, payload, api_keys[index])

        if response.status_code == RATE_LIMITED:
            logger.warning(
                "Upstream rate limited",
                extra={"audit_data": {
                    "model": model_name,
                    "key_index": index,
                    "attempt": attempt,
                    "pool_size": pool_size,
                }},
            )
            rotations += 1
            continue

        return ProxyResult(status_code=response.status_code, body=response.text)

    return error_result(RATE_LIMITED, EXHAUSTED_MESSAGE)


async def handle_proxy_request(envelope: Any) -> ProxyResult:
    """Validate a ``{modelName, body}`` envelope and forward it.

    Missing fields and an empty key pool are answered locally without any
    upstream call.
    """
    if not isinstance(envelope, dict):
        return error_result(400, BAD_REQUEST_MESSAGE)

    model_name = envelope.get("modelName")
    payload = envelope.get("body")
    if not model_name or not isinstance(model_name, str) or not payload:
        return error_result(400, BAD_REQUEST_MESSAGE)

    settings = get_settings()
    api_keys = settings.api_keys_list
    if not api_keys:
        get_audit_logger().error("No upstream API keys configured")
        return error_result(500, CONFIG_ERROR_MESSAGE)

    return await forward_with_rotation(
        model_name,
        payload,
        api_keys,
        get_provider(),
        max_retries=settings.max_retries,
        retry_delays_ms=settings.retry_delays_ms,
        default_retry_delay_ms=settings.default_retry_delay_ms,
    )


async def close_client() -> None:
    """Gracefully close the upstream provider on shutdown."""
    await close_provider()
