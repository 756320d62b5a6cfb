from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Union

from sonos_bridge.schemas import Group, Player


NO_PLAYING_GROUP = "no playing group"
INVALID_PLAYER_NAME = "invalid player name"
ALREADY_SATISFIED = "already satisfied"


@dataclass(frozen=True)
class MembershipDiff:
    to_add: tuple[str, ...] = ()
    to_remove: tuple[str, ...] = ()

    @property
    def empty(self) -> bool:
        return not self.to_add and not self.to_remove


@dataclass(frozen=True)
class NoOp:
    reason: str
    invalid_name: str | None = None


@dataclass(frozen=True)
class Apply:
    group_id: str
    new_player_ids: tuple[str, ...]
    group_name: str = ""
    diff: MembershipDiff = field(default_factory=MembershipDiff)


Outcome = Union[NoOp, Apply]


def find_playing_group(groups: Sequence[Group]) -> Group | None:
    for group in groups:
        if group.is_playing:
            return group
    return None


def find_player_id(players: Sequence[Player], name: str) -> str | None:
    wanted = name.lower()
    for player in players:
        if player.name.lower() == wanted:
            return player.id
    return None


def reconcile(groups: Sequence[Group], players: Sequence[Player], desired_names: Sequence[str]) -> Outcome:
    """
    Decide how the playing group's membership must change so that it holds
    exactly the players named in `desired_names`.

    The first playing group wins. Names match case-insensitively; a single
    unknown name abandons the whole change. The resulting `Apply` carries the
    full membership in the order the names were given.
    """
    target = find_playing_group(groups)
    if target is None:
        return NoOp(reason=NO_PLAYING_GROUP)

    desired_ids: list[str] = []
    for name in desired_names:
        player_id = find_player_id(players, name)
        if player_id is None:
            return NoOp(reason=INVALID_PLAYER_NAME, invalid_name=name)
        if player_id not in desired_ids:
            desired_ids.append(player_id)

    current = set(target.playerIds)
    wanted = set(desired_ids)
    diff = MembershipDiff(
        to_add=tuple(pid for pid in desired_ids if pid not in current),
        to_remove=tuple(pid for pid in target.playerIds if pid not in wanted),
    )
    if diff.empty:
        return NoOp(reason=ALREADY_SATISFIED)

    return Apply(
        group_id=target.id,
        new_player_ids=tuple(desired_ids),
        group_name=target.name,
        diff=diff,
    )


def format_player_list(player_ids: Sequence[str], players: Sequence[Player]) -> str:
    names = {p.id: p.name for p in players}
    return "[" + ", ".join(names.get(pid, pid) for pid in player_ids) + "]"


def describe_change(group: Group, outcome: Apply, players: Sequence[Player]) -> str:
    return (
        f'Modifying group "{group.name}": '
        f"{format_player_list(group.playerIds, players)}"
        f" + {format_player_list(outcome.diff.to_add, players)}"
        f" - {format_player_list(outcome.diff.to_remove, players)}"
        f" = {format_player_list(outcome.new_player_ids, players)}"
    )
