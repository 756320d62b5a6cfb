import base64
from urllib.parse import parse_qs

import httpx
import pytest

from sonos_bridge.errors import AuthError, SonosTransportError
from sonos_bridge.token_cache import TokenCache


def _cache(handler, clock) -> TokenCache:
    return TokenCache(
        auth_server="https://auth.test",
        app_key="app-key",
        app_secret="app-secret",
        refresh_token="refresh-1",
        clock=clock,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_refresh_posts_form_body_with_basic_auth(clock):
    seen = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("authorization")
        seen["form"] = parse_qs(request.content.decode("utf-8"))
        return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 86400})

    tokens = _cache(handler, clock)
    try:
        assert await tokens.get_token() == "tok-1"
    finally:
        await tokens.close()

    expected = base64.b64encode(b"app-key:app-secret").decode("ascii")
    assert seen["method"] == "POST"
    assert seen["path"] == "/login/v3/oauth/access"
    assert seen["auth"] == f"Basic {expected}"
    assert seen["form"] == {"refresh_token": ["refresh-1"], "grant_type": ["refresh_token"]}
    assert tokens.token.granted_at_ms == clock.now_ms


@pytest.mark.asyncio
async def test_cached_token_is_reused_until_one_minute_before_expiry(clock):
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(200, json={"access_token": f"tok-{calls['n']}", "expires_in": 3600})

    tokens = _cache(handler, clock)
    t0 = clock.now_ms
    try:
        assert await tokens.get_token() == "tok-1"

        clock.now_ms = t0 + 3600 * 1000 - 60001
        assert await tokens.get_token() == "tok-1"
        assert calls["n"] == 1

        clock.now_ms = t0 + 3600 * 1000 - 59999
        assert await tokens.get_token() == "tok-2"
        assert calls["n"] == 2
        assert tokens.token.granted_at_ms == clock.now_ms
    finally:
        await tokens.close()


@pytest.mark.asyncio
async def test_failed_refresh_raises_auth_error_and_keeps_stale_token(clock):
    responses = [
        httpx.Response(200, json={"access_token": "tok-1", "expires_in": 120}),
        httpx.Response(401, json={"error": "invalid_grant"}),
        httpx.Response(200, json={"access_token": "tok-2", "expires_in": 120}),
    ]

    async def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    tokens = _cache(handler, clock)
    try:
        await tokens.get_token()
        stale = tokens.token
        clock.now_ms += 120 * 1000

        with pytest.raises(AuthError) as exc:
            await tokens.get_token()
        assert exc.value.status_code == 401
        assert exc.value.body == {"error": "invalid_grant"}
        assert tokens.token is stale

        # Next call retries the refresh.
        assert await tokens.get_token() == "tok-2"
    finally:
        await tokens.close()


@pytest.mark.asyncio
async def test_response_without_expiry_is_an_auth_error(clock):
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "tok-1"})

    tokens = _cache(handler, clock)
    try:
        with pytest.raises(AuthError) as exc:
            await tokens.get_token()
        assert exc.value.status_code == 200
        assert tokens.token is None
    finally:
        await tokens.close()


@pytest.mark.asyncio
async def test_connect_failure_raises_transport_error(clock):
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    tokens = _cache(handler, clock)
    try:
        with pytest.raises(SonosTransportError):
            await tokens.get_token()
    finally:
        await tokens.close()


@pytest.mark.asyncio
async def test_invalidate_forces_refresh(clock):
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(200, json={"access_token": f"tok-{calls['n']}", "expires_in": 3600})

    tokens = _cache(handler, clock)
    try:
        await tokens.get_token()
        tokens.invalidate()
        assert await tokens.get_token() == "tok-2"
    finally:
        await tokens.close()


@pytest.mark.asyncio
async def test_float_expiry_is_accepted(clock):
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600.0})

    tokens = _cache(handler, clock)
    try:
        assert await tokens.get_token() == "tok-1"
        assert tokens.token.expires_in == 3600
        assert isinstance(tokens.token.expires_in, int)
    finally:
        await tokens.close()


@pytest.mark.asyncio
async def test_boolean_expiry_is_an_auth_error(clock):
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "tok-1", "expires_in": True})

    tokens = _cache(handler, clock)
    try:
        with pytest.raises(AuthError):
            await tokens.get_token()
    finally:
        await tokens.close()


@pytest.mark.asyncio
async def test_server_disconnect_raises_transport_error(clock):
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.RemoteProtocolError("Server disconnected without sending a response.")

    tokens = _cache(handler, clock)
    try:
        with pytest.raises(SonosTransportError):
            await tokens.get_token()
        assert tokens.token is None
    finally:
        await tokens.close()
