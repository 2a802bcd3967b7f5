"""
notifier.py — Notifier capability injected into the lifecycle services

Two fire-and-forget operations: send_email(template, recipient, data) and
emit(room, event, payload). The services never learn whether either
succeeded.

Business Rules:
- LiveNotifier writes the email outbox row in its own session, so a failed
  notification can never roll back a committed transition
- Any notifier failure is logged and swallowed
- RecordingNotifier keeps everything in memory (tests, scripts)

Called by: services/request_service.py, services/resolution_service.py,
           services/fanout.py, main.py (app.state.notifier)
Depends on: realtime.RoomHub, email_service.enqueue
"""

from typing import Protocol

from fastapi import Request
from loguru import logger

from ..email_service import enqueue
from ..realtime import RoomHub


class Notifier(Protocol):
    def send_email(self, template: str, recipient: str, data: dict) -> None: ...

    def emit(self, room: str, event: str, payload: dict) -> None: ...


class LiveNotifier:
    def __init__(self, hub: RoomHub, session_factory):
        self.hub = hub
        self.session_factory = session_factory

    def send_email(self, template: str, recipient: str, data: dict) -> None:
        if not recipient:
            return
        db = self.session_factory()
        try:
            enqueue(db, template, recipient, data)
            db.commit()
        except Exception:
            logger.exception("Email enqueue failed", template=template, recipient=recipient)
            db.rollback()
        finally:
            db.close()

    def emit(self, room: str, event: str, payload: dict) -> None:
        try:
            self.hub.publish(room, event, payload)
        except Exception:
            logger.exception("Live event publish failed", room=room, event_name=event)


class RecordingNotifier:
    """In-memory notifier: records emails and events in call order."""

    def __init__(self):
        self.emails: list[tuple[str, str, dict]] = []
        self.events: list[tuple[str, str, dict]] = []

    def send_email(self, template: str, recipient: str, data: dict) -> None:
        self.emails.append((template, recipient, data))

    def emit(self, room: str, event: str, payload: dict) -> None:
        self.events.append((room, event, payload))

    def rooms_for(self, event: str) -> list[str]:
        return [room for room, ev, _ in self.events if ev == event]

    def clear(self) -> None:
        self.emails.clear()
        self.events.clear()


def get_notifier(request: Request) -> Notifier:
    """FastAPI dependency: the app-wide notifier built in the lifespan."""
    return request.app.state.notifier
