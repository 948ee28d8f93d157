"""
Push channel to the backend.

Wraps a python-socketio AsyncClient. The backend emits two events:
`newLog` with a single record and `statsUpdate` with the full stats object.
Payloads are validated here so the view never sees a malformed record.
"""

import asyncio
import inspect
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional

import socketio
from socketio.exceptions import ConnectionError as ChannelConnectionError

from ..core.log_processor import process_log, process_stats
from ..core.models import LogRecord, StatsSnapshot

logger = logging.getLogger(__name__)

NEW_LOG_EVENT = "newLog"
STATS_UPDATE_EVENT = "statsUpdate"


@dataclass(frozen=True)
class ReconnectPolicy:
    """
    Exponential backoff for dropped connections and a failed first connect.

    The delay doubles from `delay` up to `delay_max`, each wait jittered by
    `randomization_factor`. attempts=0 retries forever.
    """
    attempts: int = 0
    delay: float = 1.0
    delay_max: float = 30.0
    randomization_factor: float = 0.5


class LiveEventSubscriber:
    """
    One persistent Socket.IO connection per session.

    Usage:
        async with LiveEventSubscriber(url, on_record, on_stats):
            ...  # events flow to the callbacks until the block exits

    The callbacks may be plain functions or coroutines.
    """

    def __init__(
        self,
        url: str,
        on_record: Callable[[LogRecord], Any],
        on_stats: Callable[[StatsSnapshot], Any],
        client: Optional[socketio.AsyncClient] = None,
        reconnect: ReconnectPolicy = ReconnectPolicy(),
    ):
        self.url = url
        self.on_record = on_record
        self.on_stats = on_stats
        self.reconnect = reconnect
        self.dropped = 0
        self._retry_task: Optional[asyncio.Task] = None
        self.client = client if client is not None else socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=reconnect.attempts,
            reconnection_delay=reconnect.delay,
            reconnection_delay_max=reconnect.delay_max,
            randomization_factor=reconnect.randomization_factor,
            logger=False,
        )
        self.client.on("connect", self._on_connect)
        self.client.on("disconnect", self._on_disconnect)
        self.client.on("connect_error", self._on_connect_error)
        self.client.on(NEW_LOG_EVENT, self.handle_new_log)
        self.client.on(STATS_UPDATE_EVENT, self.handle_stats_update)

    @property
    def connected(self) -> bool:
        return bool(getattr(self.client, "connected", False))

    @property
    def retrying(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    async def connect(self) -> bool:
        """
        Make one connection attempt.

        The client only reconnects by itself after a connection has been
        established, so a failed first attempt hands off to a background
        retry loop that follows self.reconnect. Returns True if connected now.
        """
        if self.connected or self.retrying:
            return self.connected
        logger.info("Connecting push channel to %s", self.url)
        try:
            await self.client.connect(self.url)
        except ChannelConnectionError as e:
            logger.warning("Push channel unavailable (%s), retrying in background", e)
            self._retry_task = asyncio.get_running_loop().create_task(self._retry_loop())
            return False
        return True

    async def close(self) -> None:
        was_connected = self.connected
        if self._retry_task is not None:
            self._retry_task.cancel()
            await asyncio.gather(self._retry_task, return_exceptions=True)
            self._retry_task = None
        # also stops the client's own reconnection attempts
        await self.client.shutdown()
        if was_connected:
            logger.info("Push channel closed")

    async def __aenter__(self) -> "LiveEventSubscriber":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def handle_new_log(self, payload: Any) -> None:
        try:
            record = process_log(payload)
        except ValueError as e:
            self.dropped += 1
            logger.warning("Dropping malformed %s event: %s", NEW_LOG_EVENT, e)
            return
        await _call(self.on_record, record)

    async def handle_stats_update(self, payload: Any) -> None:
        try:
            stats = process_stats(payload)
        except ValueError as e:
            self.dropped += 1
            logger.warning("Dropping malformed %s event: %s", STATS_UPDATE_EVENT, e)
            return
        await _call(self.on_stats, stats)

    async def _on_connect(self) -> None:
        logger.info("Push channel connected to %s", self.url)

    async def _on_disconnect(self, *args) -> None:
        # the client retries on its own according to self.reconnect
        logger.warning("Push channel disconnected from %s", self.url)

    async def _on_connect_error(self, data=None) -> None:
        logger.warning("Push channel connection error: %s", data)

    async def _retry_loop(self) -> None:
        policy = self.reconnect
        delay = policy.delay
        attempt = 0
        while not self.connected:
            attempt += 1
            if policy.attempts and attempt > policy.attempts:
                logger.error("Giving up on push channel after %d attempts", policy.attempts)
                return
            jitter = 1 + policy.randomization_factor * (2 * random.random() - 1)
            await asyncio.sleep(delay * jitter)
            try:
                await self.client.connect(self.url)
            except ChannelConnectionError as e:
                logger.warning("Push channel retry %d failed: %s", attempt, e)
                delay = min(delay * 2, policy.delay_max)


async def _call(callback, *args):
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
