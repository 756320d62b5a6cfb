from __future__ import annotations

from typing import Any

import httpx


class SonosTransportError(Exception):
    pass


class SonosUpstreamError(Exception):
    label = "Sonos upstream error"

    def __init__(self, *, status_code: int, body: Any) -> None:
        super().__init__(f"{self.label}: {status_code}")
        self.status_code = status_code
        self.body = body


class AuthError(SonosUpstreamError):
    label = "Sonos token refresh failed"


class ApiError(SonosUpstreamError):
    label = "Sonos control API error"


def response_body(resp: httpx.Response) -> Any:
    content_type = resp.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return resp.json()
        except ValueError:
            return resp.text
    return resp.text


TRANSPORT_ERRORS = (httpx.TransportError,)
