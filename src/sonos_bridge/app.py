from __future__ import annotations

import logging

import httpx

from sonos_bridge.bus import BusConnection
from sonos_bridge.config import AppConfig
from sonos_bridge.listener import CommandListener
from sonos_bridge.sonos_client import SonosClient
from sonos_bridge.timing import timed
from sonos_bridge.token_cache import TokenCache

logger = logging.getLogger(__name__)


class StartupError(Exception):
    pass


def modify_playing_topic(topic_prefix: str) -> str:
    return f"{topic_prefix.rstrip('/')}/groups/modify_playing"


async def resolve_household_id(sonos: SonosClient, override: str | None = None) -> str:
    if override:
        logger.info("Using configured household ID %s", override)
        return override

    logger.info("Looking up default Sonos household ID")
    households = await sonos.list_households()
    if not households:
        raise StartupError("Sonos account has no households")

    # Ambiguous with several households; SONOS_HOUSEHOLD_ID pins one.
    household_id = households[0].id
    logger.info("Using household ID %s (%d others available)", household_id, len(households) - 1)
    return household_id


def build_bus(config: AppConfig) -> BusConnection:
    return BusConnection(
        hostname=config.mqtt_host,
        port=config.mqtt_port,
        identifier=config.mqtt_client_id,
        username=config.mqtt_username,
        password=config.mqtt_password,
    )


async def run(
    config: AppConfig,
    *,
    bus: BusConnection | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Resolve the household, subscribe to the command topic and serve until cancelled."""
    tokens = TokenCache(
        auth_server=config.auth_server,
        app_key=config.app_key,
        app_secret=config.app_secret,
        refresh_token=config.refresh_token,
        timeout_seconds=config.http_timeout_seconds,
        transport=transport,
    )
    sonos = SonosClient(
        api_server=config.api_server,
        tokens=tokens,
        timeout_seconds=config.http_timeout_seconds,
        transport=transport,
    )
    try:
        async with timed("get household"):
            household_id = await resolve_household_id(sonos, config.household_id)

        async with bus or build_bus(config) as connection:
            listener = CommandListener(sonos=sonos, household_id=household_id)
            logger.info("Setting up MQTT listeners")
            subscription = await connection.subscribe(
                modify_playing_topic(config.topic_prefix), listener.handle_message
            )
            try:
                await connection.run()
            finally:
                await subscription.unsubscribe()
    finally:
        await sonos.close()
        await tokens.close()
