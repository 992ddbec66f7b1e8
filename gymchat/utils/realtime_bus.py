import asyncio
import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis
from fastapi import WebSocketDisconnect
from redis.exceptions import RedisError

from gymchat.config.settings import settings
from gymchat.utils.websocket_manager import manager


logger = logging.getLogger(__name__)


def participant_channel(participant_id: str) -> str:
    return f"participant:{participant_id}"


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        class _Sub:
            async def run(self):
                await asyncio.Future()

            async def cancel(self):
                return

        return _Sub()

    async def close(self) -> None:
        return


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    except RedisError as exc:
                        logger.warning("Redis subscription on %s failed: %s", channel, exc)
                        await asyncio.sleep(0.5)
                        continue
                    if msg and msg.get("type") == "message":
                        data = msg.get("data")
                        if isinstance(data, bytes):
                            data = data.decode("utf-8")
                        try:
                            await on_message(data)
                        except (RuntimeError, WebSocketDisconnect) as exc:
                            # the socket behind this subscription is gone
                            logger.info("Stopping subscription on %s: %s", channel, exc)
                            self_inner._running = False

            async def cancel(self_inner):
                self_inner._running = False
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()

        return _Sub()

    async def close(self) -> None:
        await self._redis.aclose()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    url: Optional[str] = settings.REDIS_URL
    if not url:
        _bus = NoopBus()
    else:
        logger.info("Realtime fan-out via Redis at %s", url)
        _bus = RedisBus(url)
    return _bus


async def close_bus() -> None:
    global _bus
    if _bus is not None:
        await _bus.close()
        _bus = None


async def deliver(participant_id: str, payload: str) -> None:
    """Push ``payload`` to every live connection of ``participant_id``.

    Delivery is best effort: the message is already stored when this runs.
    """
    bus = await get_bus()
    if not bus.enabled:
        await manager.send_personal_message(participant_id, payload)
        return
    try:
        await bus.publish(participant_channel(participant_id), payload)
    except RedisError as exc:
        logger.warning("Realtime publish to %s failed: %s", participant_id, exc)
