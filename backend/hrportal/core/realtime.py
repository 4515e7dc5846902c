import asyncio
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

WATCHED_TABLES = ("attendance", "tickets", "leaves", "tasks")


@dataclass
class Subscription:
    websocket: WebSocket
    # only rows owned by this user are pushed; None receives everything
    user_id: Optional[int] = None


class RealtimeHub:
    """Pushes row-change events to websocket subscribers, one channel per table.

    Routes run in the threadpool, so publishing goes through
    ``publish_threadsafe`` which hops onto the event loop captured when the
    first subscriber connected. A subscriber whose socket fails is dropped.
    """

    def __init__(self):
        self.channels: Dict[str, Dict[int, Subscription]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = Lock()

    async def subscribe(self, channel: str, websocket: WebSocket, user_id: Optional[int] = None):
        self._loop = asyncio.get_running_loop()
        with self._lock:
            self.channels.setdefault(channel, {})[id(websocket)] = Subscription(websocket, user_id)
        await websocket.accept()

    def unsubscribe(self, channel: str, websocket: WebSocket):
        with self._lock:
            subscribers = self.channels.get(channel)
            if subscribers is not None:
                subscribers.pop(id(websocket), None)

    async def hold_open(self, channel: str, websocket: WebSocket):
        """Keep the socket open until the client goes away, then unsubscribe."""
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            self.unsubscribe(channel, websocket)

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self.channels.get(channel, {}))

    async def publish(self, channel: str, payload: dict, user_id: Optional[int] = None):
        with self._lock:
            targets = [
                sub for sub in self.channels.get(channel, {}).values()
                if sub.user_id is None or user_id is None or sub.user_id == user_id
            ]
        stale = []
        for sub in targets:
            try:
                await sub.websocket.send_json(payload)
            except Exception:
                stale.append(sub.websocket)
        for websocket in stale:
            self.unsubscribe(channel, websocket)

    def publish_threadsafe(self, channel: str, payload: dict, user_id: Optional[int] = None):
        loop = self._loop
        if not loop or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.publish(channel, payload, user_id), loop)


realtime_hub = RealtimeHub()


def notify_table_change(table: str, event: str, record_id: int | None, user_id: int | None) -> None:
    payload = {
        "type": f"{table}_update",
        "event": event,
        "table": table,
        "record_id": record_id,
        "user_id": user_id,
    }
    logger.debug("realtime %s %s id=%s", table, event, record_id)
    realtime_hub.publish_threadsafe(table, payload, user_id)


def notify_auth_state_change(user_id: int, event: str, session_id: str | None = None) -> None:
    payload = {
        "type": "auth_state_change",
        "event": event,
        "session": {"user_id": user_id, "session_id": session_id} if session_id else None,
    }
    realtime_hub.publish_threadsafe("auth", payload, user_id)
