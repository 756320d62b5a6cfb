from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import aiomqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], Awaitable[Any]]


@dataclass(frozen=True)
class Subscription:
    topic: str
    unsubscribe: Callable[[], Awaitable[None]]


def _payload_bytes(payload: Any) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    return str(payload).encode("utf-8")


class BusConnection:
    """
    MQTT connection that routes messages to per-topic async handlers.

    Messages are dispatched one at a time: `run()` awaits each handler before
    reading the next message.
    """

    def __init__(
        self,
        *,
        hostname: str,
        port: int = 1883,
        identifier: str | None = None,
        username: str | None = None,
        password: str | None = None,
        client: Any | None = None,
    ) -> None:
        self._hostname = hostname
        self._port = port
        self._client = client or aiomqtt.Client(
            hostname=hostname,
            port=port,
            identifier=identifier,
            username=username,
            password=password,
        )
        self._handlers: dict[str, MessageHandler] = {}

    async def __aenter__(self) -> "BusConnection":
        logger.info("Connecting to MQTT broker %s:%d...", self._hostname, self._port)
        await self._client.__aenter__()
        logger.info("Connected to MQTT.")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._handlers.clear()
        await self._client.__aexit__(exc_type, exc, tb)
        logger.info("Disconnected from MQTT.")

    @property
    def topics(self) -> list[str]:
        return list(self._handlers)

    async def subscribe(self, topic: str, handler: MessageHandler) -> Subscription:
        await self._client.subscribe(topic)
        self._handlers[topic] = handler
        logger.info("Subscribed to %s", topic)

        async def _unsubscribe() -> None:
            if self._handlers.get(topic) is not handler:
                return
            del self._handlers[topic]
            try:
                await self._client.unsubscribe(topic)
            except aiomqtt.MqttError as exc:
                logger.warning("Failed to unsubscribe from %s: %s", topic, exc)
            logger.info("Unsubscribed from %s", topic)

        return Subscription(topic=topic, unsubscribe=_unsubscribe)

    async def dispatch(self, topic: str, payload: Any) -> None:
        handler = self._handlers.get(topic)
        if handler is None:
            logger.debug("Received message on unknown MQTT topic %s", topic)
            return
        try:
            await handler(_payload_bytes(payload))
        except Exception:
            logger.exception("MQTT handler for %s failed", topic)

    async def run(self) -> None:
        async for message in self._client.messages:
            await self.dispatch(message.topic.value, message.payload)
