"""Unit tests for the GLM HTTP transport, using httpx.MockTransport."""

import json

import httpx
import pytest

from cra_assistant.config import GatewayConfig
from cra_assistant.gateway.client import GatewayClient
from cra_assistant.gateway.transport import (
    AuthenticationError,
    BadRequestError,
    GLMTransport,
    InvalidResponseError,
    NetworkError,
    ServerError,
    UnexpectedStatusError,
    classify_network_error,
)
from cra_assistant.schemas.errors import ErrorCode, NetworkCause

URL = "https://glm.test/api/paas/v4/chat/completions"
BODY = {"model": "glm-4", "messages": [{"role": "user", "content": "hi"}]}


def _completion(content: str) -> dict:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


def _transport(handler) -> GLMTransport:
    config = GatewayConfig(api_key="keyid.secret", base_url=URL)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GLMTransport(config, client=client)


def _raise(exc: Exception):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc
    return handler


class TestGLMTransport:
    @pytest.mark.asyncio
    async def test_posts_json_with_bearer_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion("hello"))

        transport = _transport(handler)
        assert await transport.send(BODY, "tok.en.sig") == "hello"
        await transport.aclose()

        assert seen == {"method": "POST", "url": URL, "auth": "Bearer tok.en.sig", "body": BODY}

    @pytest.mark.parametrize("status, exc_type", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (400, BadRequestError),
        (500, ServerError),
        (503, ServerError),
        (429, UnexpectedStatusError),
        (404, UnexpectedStatusError),
    ])
    @pytest.mark.asyncio
    async def test_status_mapping(self, status, exc_type):
        transport = _transport(lambda request: httpx.Response(status, text="error body"))
        with pytest.raises(exc_type) as exc_info:
            await transport.send(BODY, "t")
        assert exc_info.value.status_code == status
        assert "error body" in str(exc_info.value)

    @pytest.mark.parametrize("response", [
        httpx.Response(200, json=_completion("")),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json={"error": "nope"}),
        httpx.Response(200, text="<html>gateway</html>"),
    ])
    @pytest.mark.asyncio
    async def test_unusable_envelope(self, response):
        transport = _transport(lambda request: response)
        with pytest.raises(InvalidResponseError):
            await transport.send(BODY, "t")

    @pytest.mark.parametrize("exc, cause", [
        (httpx.ReadError("Connection reset by peer"), NetworkCause.CONNECTION_RESET),
        (httpx.RemoteProtocolError("Server disconnected"), NetworkCause.CONNECTION_RESET),
        (httpx.ReadTimeout("timed out"), NetworkCause.TIMEOUT),
        (httpx.ConnectTimeout("timed out"), NetworkCause.TIMEOUT),
        (httpx.ConnectError("[Errno -2] Name or service not known"), NetworkCause.DNS_FAILURE),
        (httpx.ConnectError("[Errno 111] Connection refused"), NetworkCause.CONNECTION_REFUSED),
        (httpx.ConnectError("SSL handshake failed"), NetworkCause.OTHER),
    ])
    @pytest.mark.asyncio
    async def test_network_errors_carry_cause(self, exc, cause):
        transport = _transport(_raise(exc))
        with pytest.raises(NetworkError) as exc_info:
            await transport.send(BODY, "t")
        assert exc_info.value.cause == cause


class TestClassifyNetworkError:
    def test_write_error_is_reset(self):
        assert classify_network_error(httpx.WriteError("broken pipe")) == NetworkCause.CONNECTION_RESET

    def test_pool_timeout_is_timeout(self):
        assert classify_network_error(httpx.PoolTimeout("pool")) == NetworkCause.TIMEOUT

    def test_unknown_transport_error(self):
        assert classify_network_error(httpx.UnsupportedProtocol("ftp")) == NetworkCause.OTHER


# ---------------------------------------------------------------------------
# Gateway over the real transport
# ---------------------------------------------------------------------------

class TestGatewayOverHttp:
    @pytest.mark.asyncio
    async def test_unauthorized_is_single_request(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(401, json={"error": {"code": "1002", "message": "invalid token"}})

        config = GatewayConfig(api_key="keyid.secret", base_url=URL)
        async with GatewayClient(config, transport=_transport(handler)) as gateway:
            result = await gateway.extract_subject_number("record")

        assert result.error.code == ErrorCode.AUTH_FAILED
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_reset_then_success(self):
        replies = iter([
            httpx.ReadError("Connection reset by peer"),
            httpx.Response(200, json=_completion('{"subjectNumber": "S-042"}')),
        ])

        def handler(request: httpx.Request) -> httpx.Response:
            reply = next(replies)
            if isinstance(reply, Exception):
                raise reply
            return reply

        async def no_sleep(seconds: float) -> None:
            pass

        config = GatewayConfig(api_key="keyid.secret", base_url=URL)
        async with GatewayClient(config, transport=_transport(handler), sleep=no_sleep) as gateway:
            result = await gateway.extract_subject_number("record")

        assert result.unwrap() == "S-042"
