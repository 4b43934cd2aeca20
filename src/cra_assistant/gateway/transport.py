"""HTTP transport for the GLM chat-completions endpoint.

``GLMTransport.send`` performs exactly one POST and either returns the
assistant message content or raises one of the ``TransportError`` subclasses
below. Retry and rate-limit policy live in the gateway client.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from cra_assistant.config import GatewayConfig
from cra_assistant.logging import log
from cra_assistant.schemas.errors import NetworkCause


class TransportError(RuntimeError):
    """Base class for everything ``send`` raises."""


class AuthenticationError(TransportError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"API returned status {status_code}: {body}")
        self.status_code = status_code


class BadRequestError(TransportError):
    def __init__(self, body: str) -> None:
        super().__init__(f"API returned status 400: {body}")
        self.status_code = 400


class ServerError(TransportError):
    """5xx from the endpoint; retryable."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"API returned status {status_code}: {body}")
        self.status_code = status_code


class UnexpectedStatusError(TransportError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"API returned status {status_code}: {body}")
        self.status_code = status_code


class NetworkError(TransportError):
    """Connection-level failure; retryable."""

    def __init__(self, cause: NetworkCause, message: str) -> None:
        super().__init__(f"Network error ({cause}): {message}")
        self.cause = cause


class InvalidResponseError(TransportError):
    """200 response whose envelope has no usable message content."""


RETRYABLE_ERRORS: tuple[type[TransportError], ...] = (NetworkError, ServerError)


class ChatTransport(Protocol):
    async def send(self, body: dict[str, Any], token: str) -> str: ...

    async def aclose(self) -> None: ...


_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "no address associated",
    "getaddrinfo failed",
)


def classify_network_error(exc: httpx.TransportError) -> NetworkCause:
    """Map an httpx transport exception onto a network sub-cause."""
    if isinstance(exc, httpx.TimeoutException):
        return NetworkCause.TIMEOUT
    message = str(exc).lower()
    if isinstance(exc, httpx.ConnectError):
        if any(marker in message for marker in _DNS_MARKERS):
            return NetworkCause.DNS_FAILURE
        if "refused" in message:
            return NetworkCause.CONNECTION_REFUSED
        return NetworkCause.OTHER
    if isinstance(exc, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)):
        return NetworkCause.CONNECTION_RESET
    return NetworkCause.OTHER


class GLMTransport:
    def __init__(self, config: GatewayConfig, client: httpx.AsyncClient | None = None) -> None:
        self._url = config.base_url
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(config.timeout))

    async def send(self, body: dict[str, Any], token: str) -> str:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        try:
            response = await self._client.post(self._url, json=body, headers=headers)
        except httpx.TransportError as exc:
            cause = classify_network_error(exc)
            log.warning("transport.network_error", cause=cause, error=str(exc) or type(exc).__name__)
            raise NetworkError(cause, str(exc) or type(exc).__name__) from exc

        status = response.status_code
        log.debug("transport.response", status=status, bytes=len(response.content))

        if status in (401, 403):
            raise AuthenticationError(status, response.text)
        if status == 400:
            raise BadRequestError(response.text)
        if status >= 500:
            raise ServerError(status, response.text)
        if status != 200:
            raise UnexpectedStatusError(status, response.text)

        return _message_content(response)

    async def aclose(self) -> None:
        await self._client.aclose()


def _message_content(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError as exc:
        raise InvalidResponseError(f"Response body is not JSON: {response.text[:200]}") from exc

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise InvalidResponseError("Response has no choices[0].message.content") from exc

    if not content:
        raise InvalidResponseError("Empty response content from API")
    return content
