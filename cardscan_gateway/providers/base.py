"""Abstract base for upstream generative AI providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class UpstreamResponse:
    status_code: int
    text: str  # Raw body as received; upstream error bodies may not be valid JSON


class GenerativeProvider(ABC):
    """Base class for upstream provider implementations."""

    @abstractmethod
    async def generate_content(self, model_name: str, payload: Any, api_key: str) -> UpstreamResponse:
        """Send one generation request upstream with a single credential.

        Args:
            model_name: Upstream model identifier, embedded in the URL path.
            payload: Opaque JSON value forwarded as the request body.
            api_key: The credential for this attempt.

        Returns:
            UpstreamResponse with the status code and raw body text.
        """
        ...

    async def close(self) -> None:
        """Cleanup resources. Override if provider holds connections."""
        pass
