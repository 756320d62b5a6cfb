from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import os


DEFAULT_AUTH_SERVER = "https://api.sonos.com"
DEFAULT_API_SERVER = "https://api.ws.sonos.com"


class ConfigError(Exception):
    pass


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value or not value.strip():
        raise ConfigError(f"{name} must be set")
    return value.strip()


def _optional(name: str) -> str | None:
    value = os.getenv(name)
    if not value or not value.strip():
        return None
    return value.strip()


def _int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class AppConfig:
    mqtt_host: str
    mqtt_port: int
    mqtt_client_id: str
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    topic_prefix: str
    app_key: str
    app_secret: str
    refresh_token: str
    household_id: Optional[str]
    auth_server: str
    api_server: str
    http_timeout_seconds: float
    log_level: str

    @staticmethod
    def from_env() -> "AppConfig":
        return AppConfig(
            mqtt_host=_require("MQTT_HOST"),
            mqtt_port=_int("MQTT_PORT", "1883"),
            mqtt_client_id=os.getenv("MQTT_CLIENT_ID", "sonos-bridge"),
            mqtt_username=_optional("MQTT_USERNAME"),
            mqtt_password=_optional("MQTT_PASSWORD"),
            topic_prefix=os.getenv("MQTT_TOPIC_PREFIX", "sonos").rstrip("/"),
            app_key=_require("SONOS_APP_KEY"),
            app_secret=_require("SONOS_APP_SECRET"),
            refresh_token=_require("SONOS_REFRESH_TOKEN"),
            # First household in the account listing is used when unset.
            household_id=_optional("SONOS_HOUSEHOLD_ID"),
            auth_server=os.getenv("SONOS_AUTH_SERVER", DEFAULT_AUTH_SERVER).rstrip("/"),
            api_server=os.getenv("SONOS_API_SERVER", DEFAULT_API_SERVER).rstrip("/"),
            http_timeout_seconds=_float("HTTP_TIMEOUT_SECONDS", "10"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
