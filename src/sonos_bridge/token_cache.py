from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

import httpx

from sonos_bridge.errors import TRANSPORT_ERRORS, AuthError, SonosTransportError, response_body
from sonos_bridge.timing import timed

logger = logging.getLogger(__name__)

TOKEN_PATH = "/login/v3/oauth/access"
SAFETY_MARGIN_MS = 60_000


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class OAuthToken:
    access_token: str
    expires_in: int
    granted_at_ms: int

    @property
    def expires_at_ms(self) -> int:
        return self.granted_at_ms + self.expires_in * 1000

    def is_valid(self, now_ms: int) -> bool:
        return self.expires_at_ms - SAFETY_MARGIN_MS > now_ms


class TokenCache:
    """
    Holds the current Sonos bearer token and refreshes it from the long-lived
    refresh credential when it is missing or about to expire.

    Concurrent callers may both refresh; the listener never runs two commands
    at once, so this is not guarded.
    """

    def __init__(
        self,
        *,
        auth_server: str,
        app_key: str,
        app_secret: str,
        refresh_token: str,
        timeout_seconds: float | None = 10.0,
        clock: Callable[[], int] = _now_ms,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth_server = auth_server.rstrip("/")
        self._app_key = app_key
        self._app_secret = app_secret
        self._refresh_token = refresh_token
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._token: OAuthToken | None = None

    @property
    def token(self) -> OAuthToken | None:
        return self._token

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def invalidate(self) -> None:
        self._token = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client
        self._client = httpx.AsyncClient(
            base_url=self._auth_server,
            auth=httpx.BasicAuth(self._app_key, self._app_secret),
            timeout=httpx.Timeout(self._timeout_seconds),
            transport=self._transport,
        )
        return self._client

    async def get_token(self) -> str:
        token = self._token
        if token is not None and token.is_valid(self._clock()):
            return token.access_token
        token = await self._refresh()
        return token.access_token

    async def _refresh(self) -> OAuthToken:
        logger.info("Refreshing Sonos OAuth token")
        client = self._get_client()
        try:
            async with timed("refresh oauth token"):
                resp = await client.post(
                    TOKEN_PATH,
                    data={"refresh_token": self._refresh_token, "grant_type": "refresh_token"},
                )
        except TRANSPORT_ERRORS as exc:
            raise SonosTransportError(str(exc)) from exc

        body = response_body(resp)
        if resp.status_code >= 400:
            logger.error("Failed to refresh OAuth token: %s: %s", resp.status_code, body)
            raise AuthError(status_code=resp.status_code, body=body)

        access_token = body.get("access_token") if isinstance(body, dict) else None
        expires_in = body.get("expires_in") if isinstance(body, dict) else None
        if (
            not isinstance(access_token, str)
            or not access_token
            or not isinstance(expires_in, (int, float))
            or isinstance(expires_in, bool)
        ):
            logger.error("OAuth token response is missing access_token/expires_in: %s", body)
            raise AuthError(status_code=resp.status_code, body=body)

        token = OAuthToken(access_token=access_token, expires_in=int(expires_in), granted_at_ms=self._clock())
        self._token = token

        expiration = datetime.fromtimestamp(token.expires_at_ms / 1000, tz=timezone.utc)
        logger.info("Got new Sonos OAuth token, expires at %s", expiration.isoformat())
        return token
