"""
Supabase Realtime (Phoenix channels) subscription over websockets.

Only `postgres_changes` is supported: the channel joins with a single
change filter and forwards each changed `record` to a callback.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import websockets

logger = logging.getLogger(__name__)


HEARTBEAT_INTERVAL = 30.0
RECONNECT_DELAY = 5.0
RECV_TIMEOUT = 5.0

ChangeCallback = Callable[[dict[str, Any]], Union[Awaitable[None], None]]


def build_join_message(
    topic: str,
    table: str,
    *,
    event: str = "INSERT",
    schema: str = "public",
    filter: Optional[str] = None,
    ref: str = "1",
) -> dict[str, Any]:
    change: dict[str, Any] = {"event": event, "schema": schema, "table": table}
    if filter:
        change["filter"] = filter
    return {
        "topic": f"realtime:{topic}",
        "event": "phx_join",
        "payload": {"config": {"postgres_changes": [change]}},
        "ref": ref,
    }


def build_leave_message(topic: str, ref: str) -> dict[str, Any]:
    return {"topic": f"realtime:{topic}", "event": "phx_leave", "payload": {}, "ref": ref}


def build_heartbeat(ref: str) -> dict[str, Any]:
    return {"topic": "phoenix", "event": "heartbeat", "payload": {}, "ref": ref}


def parse_change(message: dict[str, Any]) -> dict[str, Any] | None:
    """Return the changed row of a `postgres_changes` message, else None."""

    if message.get("event") != "postgres_changes":
        return None
    payload = message.get("payload") or {}
    data = payload.get("data") or {}
    record = data.get("record")
    if not isinstance(record, dict):
        return None
    return record


class RealtimeChannel:
    """
    One postgres_changes subscription.

    `subscribe()` starts a background task that keeps the socket open,
    reconnecting after RECONNECT_DELAY seconds when it drops.
    """

    def __init__(
        self,
        url: str,
        topic: str,
        table: str,
        callback: ChangeCallback,
        *,
        event: str = "INSERT",
        filter: Optional[str] = None,
    ) -> None:
        self.url = url
        self.topic = topic
        self.table = table
        self.event = event
        self.filter = filter
        self._callback = callback
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._websocket: Any = None
        self._ref = 0

    def _next_ref(self) -> str:
        self._ref += 1
        return str(self._ref)

    async def subscribe(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._listen())

    async def unsubscribe(self) -> None:
        self._running = False
        if self._websocket is not None:
            try:
                await self._websocket.send(json.dumps(build_leave_message(self.topic, self._next_ref())))
            except websockets.ConnectionClosed:
                pass
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _dispatch(self, record: dict[str, Any]) -> None:
        # A failing callback must not drop the socket
        try:
            result = self._callback(record)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Realtime callback failed on %s", self.topic)

    async def _listen(self) -> None:
        loop = asyncio.get_running_loop()
        while self._running:
            try:
                async with websockets.connect(self.url) as websocket:
                    self._websocket = websocket
                    join = build_join_message(
                        self.topic,
                        self.table,
                        event=self.event,
                        filter=self.filter,
                        ref=self._next_ref(),
                    )
                    await websocket.send(json.dumps(join))
                    logger.info("Realtime channel %s joined (%s)", self.topic, self.filter or self.table)
                    last_heartbeat = loop.time()

                    while self._running:
                        if loop.time() - last_heartbeat >= HEARTBEAT_INTERVAL:
                            await websocket.send(json.dumps(build_heartbeat(self._next_ref())))
                            last_heartbeat = loop.time()
                        try:
                            raw = await asyncio.wait_for(websocket.recv(), timeout=RECV_TIMEOUT)
                        except asyncio.TimeoutError:
                            continue
                        except websockets.ConnectionClosed:
                            logger.warning("Realtime channel %s closed, reconnecting", self.topic)
                            break

                        record = parse_change(json.loads(raw))
                        if record is not None:
                            await self._dispatch(record)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.error("Realtime channel %s error: %s", self.topic, exc)
            finally:
                self._websocket = None
            if self._running:
                await asyncio.sleep(RECONNECT_DELAY)
