from __future__ import annotations

from pydantic import BaseModel, Field


PLAYBACK_STATE_PLAYING = "PLAYBACK_STATE_PLAYING"


class Household(BaseModel):
    id: str = Field(..., description="Opaque household id.")
    name: str | None = Field(default=None, description="Display name, when the account has one.")


class HouseholdsResponse(BaseModel):
    households: list[Household] = Field(default_factory=list)


class Player(BaseModel):
    id: str = Field(..., description="Opaque player id.", examples=["RINCON_000E58000000001400"])
    name: str = Field(..., description="Room name shown in the Sonos app.", examples=["Bedroom"])


class Group(BaseModel):
    id: str = Field(..., description="Opaque group id.")
    name: str = Field(default="", description="Group display name.")
    coordinatorId: str | None = Field(default=None, description="Player id leading playback for the group.")
    playbackState: str = Field(default="", description="e.g. PLAYBACK_STATE_PLAYING, PLAYBACK_STATE_PAUSED.")
    playerIds: list[str] = Field(default_factory=list, description="Member player ids, in vendor order.")

    @property
    def is_playing(self) -> bool:
        return self.playbackState == PLAYBACK_STATE_PLAYING


class GroupsSnapshot(BaseModel):
    groups: list[Group] = Field(default_factory=list)
    players: list[Player] = Field(default_factory=list)


class SetGroupMembersRequest(BaseModel):
    playerIds: list[str]
