import httpx
import pytest

from beniocord.errors import FailureReason, RequestFailure
from beniocord.rest.http import HttpGateway


def _gateway(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpGateway("https://api.test/", "secret", timeout=1.0, http=http)


@pytest.mark.asyncio
async def test_request_sends_bearer_token_and_params():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": 1})

    gateway = _gateway(handler)
    data = await gateway.request("GET", "/api/channels/7/messages", params={"limit": 5})
    await gateway.close()

    assert data == {"id": 1}
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert str(seen[0].url) == "https://api.test/api/channels/7/messages?limit=5"


@pytest.mark.asyncio
async def test_request_sends_json_body():
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return httpx.Response(201, json={"channel": {"id": 9}})

    gateway = _gateway(handler)
    data = await gateway.request("POST", "/api/channels", body={"name": "general"})

    assert data == {"channel": {"id": 9}}
    assert b'"name"' in bodies[0]


@pytest.mark.asyncio
async def test_empty_body_returns_none():
    gateway = _gateway(lambda request: httpx.Response(204))

    assert await gateway.request("DELETE", "/api/channels/9") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, reason",
    [
        (401, FailureReason.UNAUTHORIZED),
        (403, FailureReason.FORBIDDEN),
        (404, FailureReason.NOT_FOUND),
        (500, FailureReason.REJECTED),
        (400, FailureReason.REJECTED),
    ],
)
async def test_status_codes_map_to_reasons(status, reason):
    gateway = _gateway(lambda request: httpx.Response(status, json={"error": "nope"}))

    with pytest.raises(RequestFailure) as info:
        await gateway.request("GET", "/api/users/2")

    assert info.value.reason is reason
    assert info.value.status == status
    assert "nope" in str(info.value)


@pytest.mark.asyncio
async def test_auth_failures_are_flagged():
    gateway = _gateway(lambda request: httpx.Response(403))

    with pytest.raises(RequestFailure) as info:
        await gateway.request("GET", "/api/users/me")

    assert info.value.is_auth_failure


@pytest.mark.asyncio
async def test_rate_limit_carries_retry_after():
    gateway = _gateway(lambda request: httpx.Response(429, json={"retry_after": 2.5}))

    with pytest.raises(RequestFailure) as info:
        await gateway.request("GET", "/api/users/2")

    assert info.value.reason is FailureReason.RATE_LIMITED
    assert info.value.retry_after == 2.5


@pytest.mark.asyncio
async def test_rate_limit_falls_back_to_header():
    gateway = _gateway(lambda request: httpx.Response(429, headers={"Retry-After": "3"}))

    with pytest.raises(RequestFailure) as info:
        await gateway.request("GET", "/api/users/2")

    assert info.value.retry_after == 3.0


@pytest.mark.asyncio
async def test_timeout_and_network_failures():
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RequestFailure) as info:
        await _gateway(timeout).request("GET", "/api/users/me")
    assert info.value.reason is FailureReason.TIMEOUT
    assert info.value.status is None

    with pytest.raises(RequestFailure) as info:
        await _gateway(refused).request("GET", "/api/users/me")
    assert info.value.reason is FailureReason.NETWORK


@pytest.mark.asyncio
async def test_other_request_errors_map_to_network():
    def handler(request):
        raise httpx.DecodingError("bad gzip", request=request)

    with pytest.raises(RequestFailure) as info:
        await _gateway(handler).request("GET", "/api/users/me")

    assert info.value.reason is FailureReason.NETWORK
