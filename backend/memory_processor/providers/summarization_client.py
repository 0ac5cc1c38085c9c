from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from memory_processor.providers.base import (
    ConfigurationError,
    EndpointConfig,
    HTTPClientBase,
    ResponseShapeError,
)
from memory_processor.providers.response_shapes import describe_payload, match_reply

logger = logging.getLogger(__name__)


class SummarizationClient(HTTPClientBase):
    """Derive memory text from a transcript through an OpenAI-compatible endpoint."""

    def __init__(self, timeout_sec: float = 90, http_client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(timeout_sec=timeout_sec, http_client=http_client)

    async def derive(self, directive: str, transcript_blob: str, endpoint: EndpointConfig) -> str:
        """Send one instruction call and return the normalized reply text.

        Raises ``ConfigurationError`` when the URL is missing or malformed,
        ``TransportError`` when the request does not complete with a 2xx
        status, and ``ResponseShapeError`` when no known reply shape matches.
        """

        url = (endpoint.url or "").strip()
        if not url:
            raise ConfigurationError("Memory API URL is not configured.")
        try:
            httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(
                f"Memory API URL is invalid: {exc}.", code="CONFIG_INVALID_URL"
            ) from exc

        payload = self.build_payload(directive, transcript_blob, endpoint)
        data = await self._request_json(
            "POST",
            url,
            headers=self._headers(endpoint.api_key),
            json=payload,
            timeout=endpoint.timeout_sec,
        )
        matched = match_reply(data)
        if matched is None:
            raise ResponseShapeError(
                f"Unrecognized reply shape: {describe_payload(data)}."
            )
        shape, text = matched
        logger.debug("Memory reply matched shape %s (%s chars)", shape, len(text))
        return text

    @staticmethod
    def build_payload(
        directive: str, transcript_blob: str, endpoint: EndpointConfig
    ) -> dict[str, Any]:
        return {
            "model": endpoint.model,
            "messages": [
                {"role": "system", "content": directive},
                {"role": "user", "content": transcript_blob},
            ],
            "max_tokens": endpoint.max_tokens,
            "temperature": endpoint.temperature,
        }

    @staticmethod
    def _headers(api_key: Optional[str]) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers
