from __future__ import annotations

import asyncio
import logging
from typing import Literal

from sonos_bridge.errors import SonosTransportError, SonosUpstreamError
from sonos_bridge.reconcile import Apply, Outcome, describe_change, reconcile
from sonos_bridge.sonos_client import SonosClient
from sonos_bridge.timing import timed

logger = logging.getLogger(__name__)

ListenerState = Literal["idle", "processing"]


def parse_player_names(payload: bytes | str) -> list[str]:
    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    return [item.strip() for item in text.split(",")]


class CommandListener:
    """
    Handles "move these players into the playing group" commands.

    One command is processed at a time; a second message waits on the lock
    until the first has finished all of its API calls.
    """

    def __init__(self, *, sonos: SonosClient, household_id: str) -> None:
        self._sonos = sonos
        self._household_id = household_id
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ListenerState:
        return "processing" if self._lock.locked() else "idle"

    async def handle_message(self, payload: bytes | str) -> Outcome | None:
        try:
            desired_names = parse_player_names(payload)
        except UnicodeDecodeError:
            logger.warning("Ignoring group modification request that is not UTF-8: %r", payload)
            return None

        async with self._lock:
            logger.info("Received group modification request: %s", desired_names)
            try:
                return await self._process(desired_names)
            except SonosUpstreamError as err:
                logger.error("%s; body=%s", err, err.body)
            except SonosTransportError as err:
                logger.error("Sonos unreachable: %s", err)
            return None

    async def _process(self, desired_names: list[str]) -> Outcome:
        async with timed("get groups"):
            snapshot = await self._sonos.list_groups_and_players(self._household_id)

        outcome = reconcile(snapshot.groups, snapshot.players, desired_names)
        if not isinstance(outcome, Apply):
            if outcome.invalid_name is not None:
                logger.info("Doing nothing because %s: %r", outcome.reason, outcome.invalid_name)
            else:
                logger.info("Doing nothing because %s", outcome.reason)
            return outcome

        group = next(g for g in snapshot.groups if g.id == outcome.group_id)
        logger.info("%s", describe_change(group, outcome, snapshot.players))

        memo = f"set group (+{len(outcome.diff.to_add)}, -{len(outcome.diff.to_remove)})"
        async with timed(memo):
            result = await self._sonos.set_group_members(outcome.group_id, list(outcome.new_player_ids))
        logger.info("Successfully modified group %s: %s", outcome.group_id, result)
        return outcome
