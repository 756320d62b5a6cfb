import pytest

from sonos_bridge.config import AppConfig
from sonos_bridge.schemas import Group, Player


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        mqtt_host="broker.test",
        mqtt_port=1883,
        mqtt_client_id="sonos-bridge-test",
        mqtt_username=None,
        mqtt_password=None,
        topic_prefix="home/sonos",
        app_key="app-key",
        app_secret="app-secret",
        refresh_token="refresh-1",
        household_id=None,
        auth_server="https://auth.test",
        api_server="https://api.test",
        http_timeout_seconds=5.0,
        log_level="DEBUG",
    )


@pytest.fixture
def players() -> list[Player]:
    return [Player(id="P1", name="Bedroom"), Player(id="P2", name="Office")]


@pytest.fixture
def playing_group() -> Group:
    return Group(id="G1", name="Bedroom", playbackState="PLAYBACK_STATE_PLAYING", playerIds=["P1"])


class FakeClock:
    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
