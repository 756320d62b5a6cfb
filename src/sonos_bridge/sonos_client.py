from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from sonos_bridge.errors import TRANSPORT_ERRORS, ApiError, SonosTransportError, response_body
from sonos_bridge.schemas import GroupsSnapshot, Household, HouseholdsResponse, SetGroupMembersRequest
from sonos_bridge.token_cache import TokenCache

CONTROL_PREFIX = "/control/api/v1"

_Model = TypeVar("_Model", bound=BaseModel)


def _segment(value: str) -> str:
    # Group ids carry a ':' (e.g. RINCON_xxx:123) which the API expects verbatim.
    return quote(value, safe=":")


@dataclass(frozen=True)
class SonosJSONishResult:
    status_code: int
    body: Any


class SonosClient:
    def __init__(
        self,
        *,
        api_server: str,
        tokens: TokenCache,
        timeout_seconds: float | None = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_server = api_server.rstrip("/")
        self._tokens = tokens
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client
        self._client = httpx.AsyncClient(
            base_url=self._api_server,
            timeout=httpx.Timeout(self._timeout_seconds),
            transport=self._transport,
        )
        return self._client

    async def request_jsonish(self, *, method: str, path: str, json_body: Any | None = None) -> SonosJSONishResult:
        token = await self._tokens.get_token()
        client = self._get_client()
        try:
            resp = await client.request(
                method,
                path,
                json=json_body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except TRANSPORT_ERRORS as exc:
            raise SonosTransportError(str(exc)) from exc

        body = response_body(resp)
        if resp.status_code >= 400:
            raise ApiError(status_code=resp.status_code, body=body)
        return SonosJSONishResult(status_code=resp.status_code, body=body)

    async def _get_model(self, path: str, model: type[_Model]) -> _Model:
        result = await self.request_jsonish(method="GET", path=path)
        try:
            return model.model_validate(result.body)
        except ValidationError as exc:
            raise ApiError(status_code=result.status_code, body=result.body) from exc

    async def post_json(self, path: str, *, json_body: Any) -> Any:
        result = await self.request_jsonish(method="POST", path=path, json_body=json_body)
        return result.body

    async def list_households(self) -> list[Household]:
        response = await self._get_model(f"{CONTROL_PREFIX}/households", HouseholdsResponse)
        return response.households

    async def list_groups_and_players(self, household_id: str) -> GroupsSnapshot:
        return await self._get_model(f"{CONTROL_PREFIX}/households/{_segment(household_id)}/groups", GroupsSnapshot)

    async def set_group_members(self, group_id: str, player_ids: list[str]) -> Any:
        # Order matters to the vendor (leader selection); send as given.
        payload = SetGroupMembersRequest(playerIds=list(player_ids))
        return await self.post_json(
            f"{CONTROL_PREFIX}/groups/{_segment(group_id)}/groups/setGroupMembers",
            json_body=payload.model_dump(),
        )
