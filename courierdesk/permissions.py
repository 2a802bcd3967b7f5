"""
permissions.py — Capability-checked command dispatch

Each command the core exposes declares the roles that may issue it. The
services call authorize() once, before they touch the entity; ownership
checks (own request, claimed request) stay next to the entity they guard.

Called by: services/request_service.py, services/resolution_service.py,
           services/pricing_service.py, services/notification_service.py,
           services/admin_service.py, routers/events.py
Depends on: lifecycle.py (role names), errors.py
"""

from dataclasses import dataclass

from .errors import ForbiddenError
from .lifecycle import ADMIN, AGENT, CUSTOMER, ROLES


@dataclass(frozen=True)
class Actor:
    """Verified identity of the caller, as supplied by the actor resolver."""

    user_id: str
    role: str

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(user_id=user.id, role=user.role)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

    @property
    def is_agent(self) -> bool:
        return self.role == AGENT

    @property
    def is_customer(self) -> bool:
        return self.role == CUSTOMER


ANY_ROLE = frozenset(ROLES)

COMMAND_ROLES: dict[str, frozenset[str]] = {
    "request.create": frozenset({CUSTOMER}),
    "request.read": ANY_ROLE,
    "request.update": frozenset({CUSTOMER, ADMIN}),
    "request.delete": frozenset({CUSTOMER, ADMIN}),
    "request.claim": frozenset({AGENT}),
    "request.unclaim": frozenset({AGENT}),
    "request.update_status": ANY_ROLE,
    "resolution.create": frozenset({AGENT}),
    "resolution.read": ANY_ROLE,
    "resolution.update": frozenset({AGENT}),
    "resolution.accept": frozenset({CUSTOMER}),
    "resolution.reject": frozenset({CUSTOMER}),
    "pricing.calculate": ANY_ROLE,
    "pricing.manage": frozenset({ADMIN}),
    "events.subscribe": ANY_ROLE,
    "notification.read": ANY_ROLE,
    "notification.retry": ANY_ROLE,
    "admin.dashboard": frozenset({ADMIN}),
}


def authorize(actor: Actor, command: str) -> None:
    """Raise ForbiddenError unless the actor's role may issue the command."""
    allowed = COMMAND_ROLES.get(command)
    if allowed is None:
        raise KeyError(f"Unknown command: {command}")
    if actor.role not in allowed:
        raise ForbiddenError(f"Role '{actor.role}' may not perform {command}")
