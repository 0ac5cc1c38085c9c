from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from memory_processor.core.security import truncate_text

MAX_ERROR_BODY_CHARS = 500


@dataclass(frozen=True)
class EndpointConfig:
    """Connection and sampling settings for one summarization call."""

    url: Optional[str]
    model: str
    api_key: Optional[str] = None
    max_tokens: int = 1024
    temperature: float = 0.3
    timeout_sec: float = 90


class SummarizationError(RuntimeError):
    """Raised when a summarization call cannot produce memory text."""

    def __init__(
        self,
        code: str,
        message: str,
        retryable: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = retryable
        self.status_code = status_code


class ConfigurationError(SummarizationError):
    """The endpoint is not configured well enough to send a request."""

    def __init__(self, message: str, code: str = "CONFIG_MISSING_URL") -> None:
        super().__init__(code, message)


class TransportError(SummarizationError):
    """The request failed on the network or came back with a non-success status."""

    def __init__(
        self,
        code: str,
        message: str,
        retryable: bool = False,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(code, message, retryable=retryable, status_code=status_code)
        self.body = truncate_text(body, MAX_ERROR_BODY_CHARS)


class ResponseShapeError(SummarizationError):
    """A successful reply matched none of the known payload shapes."""

    def __init__(self, message: str) -> None:
        super().__init__("RESPONSE_SHAPE", message)


def build_status_error(response: httpx.Response) -> TransportError:
    """Build a normalized transport error from an HTTP response."""

    status = response.status_code
    body = response.text or ""
    message = f"Endpoint returned {status}: {_extract_response_message(response)}"
    message = truncate_text(message, MAX_ERROR_BODY_CHARS)
    if status == 429:
        return TransportError(
            "TRANSPORT_RATE_LIMIT", message, retryable=True, status_code=status, body=body
        )
    if status >= 500:
        return TransportError(
            "TRANSPORT_UPSTREAM", message, retryable=True, status_code=status, body=body
        )
    return TransportError("TRANSPORT_BAD_STATUS", message, status_code=status, body=body)


def _extract_response_message(response: httpx.Response) -> str:
    """Extract a concise error message from JSON/text payloads."""

    try:
        payload: Any = response.json()
    except ValueError:
        return (response.text or "Unknown error from endpoint.").strip()

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            detail = error.get("message") or error.get("code")
            if isinstance(detail, str) and detail.strip():
                return detail.strip()
        if isinstance(error, str) and error.strip():
            return error.strip()
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return (response.text or "Unknown error from endpoint.").strip()


class HTTPClientBase:
    """Shared HTTP behavior for outbound endpoint calls."""

    def __init__(
        self, timeout_sec: float = 90, http_client: Optional[httpx.AsyncClient] = None
    ) -> None:
        self._timeout = timeout_sec
        self._client = http_client

    async def _request_json(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        response = await self._request(method, url, headers=headers, json=json, timeout=timeout)
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseShapeError("Endpoint returned a non-JSON body.") from exc

    async def _request(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        effective_timeout = timeout or self._timeout
        try:
            if self._client:
                response = await self._client.request(
                    method, url, headers=headers, json=json, timeout=effective_timeout
                )
            else:
                async with httpx.AsyncClient(timeout=effective_timeout) as client:
                    response = await client.request(method, url, headers=headers, json=json)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(
                f"Endpoint URL is invalid: {exc}.", code="CONFIG_INVALID_URL"
            ) from exc
        except httpx.TimeoutException as exc:
            raise TransportError(
                "TRANSPORT_TIMEOUT", "Endpoint request timed out.", retryable=True
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                "TRANSPORT_CONNECTION",
                f"Endpoint connection failed: {exc.__class__.__name__}.",
                retryable=True,
            ) from exc
        if not response.is_success:
            raise build_status_error(response)
        return response
