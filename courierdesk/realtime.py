"""
realtime.py — In-process room hub for live events

Rooms are plain strings: user:{id}, role:{role}, request:{id}. A
subscription owns a bounded asyncio.Queue bound to the event loop that
created it; publish() may be called from any thread (sync route handlers
run in the threadpool) and hands each message over with
loop.call_soon_threadsafe.

Business Rules:
- Delivery is best-effort and at most once per connected subscriber
- Publishing never blocks; a full queue drops the message with a warning
- Subscribers that connect after a publish do not see it (no replay)

Called by: services/notifier.py (LiveNotifier.emit), routers/events.py
Depends on: asyncio, threading, loguru
"""

import asyncio
import threading
import uuid

from loguru import logger


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def role_room(role: str) -> str:
    return f"role:{role}"


def request_room(request_id: str) -> str:
    return f"request:{request_id}"


class Subscription:
    """One live connection: its queue, the loop that drains it, and its rooms."""

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int):
        self.id = uuid.uuid4().hex[:12]
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.rooms: set[str] = set()
        self.dropped = 0

    def _offer(self, message: dict) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Live event dropped (queue full)",
                subscription=self.id,
                event_name=message.get("event"),
            )

    async def get(self, timeout: float | None = None) -> dict | None:
        """Next message, or None when the timeout elapses first."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class RoomHub:
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._rooms: dict[str, set[Subscription]] = {}

    def subscribe(self, rooms=()) -> Subscription:
        """Register a subscription on the running loop and join it to rooms."""
        sub = Subscription(asyncio.get_running_loop(), self.queue_size)
        for room in rooms:
            self.join(sub, room)
        return sub

    def join(self, sub: Subscription, room: str) -> None:
        with self._lock:
            self._rooms.setdefault(room, set()).add(sub)
            sub.rooms.add(room)

    def leave(self, sub: Subscription, room: str) -> None:
        with self._lock:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(sub)
                if not members:
                    del self._rooms[room]
            sub.rooms.discard(room)

    def unsubscribe(self, sub: Subscription) -> None:
        for room in list(sub.rooms):
            self.leave(sub, room)

    def room_size(self, room: str) -> int:
        with self._lock:
            return len(self._rooms.get(room, ()))

    def publish(self, room: str, event: str, payload: dict) -> int:
        """Queue the message for every subscriber in the room. Returns how many were targeted."""
        with self._lock:
            members = list(self._rooms.get(room, ()))

        message = {"room": room, "event": event, "data": payload}
        targeted = 0
        for sub in members:
            if sub.loop.is_closed():
                continue
            try:
                sub.loop.call_soon_threadsafe(sub._offer, message)
            except RuntimeError:
                # Loop closed between the check and the call
                continue
            targeted += 1
        return targeted
