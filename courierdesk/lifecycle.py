"""
lifecycle.py — Request status vocabulary and the canonical transition table

The request state machine in one place. Services consult it before every
write; nothing else decides whether a status edge is legal.

    pending -> claimed -> resolution_provided -> payment -> verification
            -> confirmed -> completed

cancelled is reachable from every non-terminal status. The only backward
edges are claimed -> pending (unclaim) and resolution_provided -> claimed
(resolution rejected). completed and cancelled are terminal.
"""

PENDING = "pending"
CLAIMED = "claimed"
RESOLUTION_PROVIDED = "resolution_provided"
PAYMENT = "payment"
VERIFICATION = "verification"
CONFIRMED = "confirmed"
COMPLETED = "completed"
CANCELLED = "cancelled"

REQUEST_STATUSES = (
    PENDING,
    CLAIMED,
    RESOLUTION_PROVIDED,
    PAYMENT,
    VERIFICATION,
    CONFIRMED,
    COMPLETED,
    CANCELLED,
)

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({CLAIMED, CANCELLED}),
    CLAIMED: frozenset({RESOLUTION_PROVIDED, PENDING, CANCELLED}),
    RESOLUTION_PROVIDED: frozenset({PAYMENT, CLAIMED, CANCELLED}),
    PAYMENT: frozenset({VERIFICATION, CANCELLED}),
    VERIFICATION: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})

# Statuses in which claimed_by_agent_id must be set
CLAIM_HELD_STATUSES = frozenset({CLAIMED, RESOLUTION_PROVIDED, PAYMENT, VERIFICATION, CONFIRMED})

# Edges that belong to a dedicated command and may not be driven by update_status
COMMAND_EDGES: dict[tuple[str, str], str] = {
    (PENDING, CLAIMED): "claim",
    (CLAIMED, PENDING): "unclaim",
    (CLAIMED, RESOLUTION_PROVIDED): "create_resolution",
    (RESOLUTION_PROVIDED, PAYMENT): "accept_resolution",
    (RESOLUTION_PROVIDED, CLAIMED): "reject_resolution",
}

# Roles allowed to drive each generic edge (ownership is checked separately)
CUSTOMER = "customer"
AGENT = "agent"
ADMIN = "admin"
ROLES = (CUSTOMER, AGENT, ADMIN)

_GENERIC_EDGE_ROLES: dict[tuple[str, str], frozenset[str]] = {
    (PAYMENT, VERIFICATION): frozenset({CUSTOMER, ADMIN}),
    (VERIFICATION, CONFIRMED): frozenset({AGENT, ADMIN}),
    (CONFIRMED, COMPLETED): frozenset({AGENT, ADMIN}),
}


def can_transition(current: str, requested: str) -> bool:
    return requested in TRANSITIONS.get(current, frozenset())


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def next_forward_status(status: str) -> str | None:
    """The status reached by moving one step forward, ignoring back-edges and cancel."""
    for candidate in TRANSITIONS.get(status, ()):
        if candidate != CANCELLED and REQUEST_STATUSES.index(candidate) > REQUEST_STATUSES.index(status):
            return candidate
    return None


def roles_for_edge(current: str, requested: str) -> frozenset[str]:
    """Roles that may drive a generic (non-command) edge."""
    if requested == CANCELLED:
        return frozenset(ROLES)
    return _GENERIC_EDGE_ROLES.get((current, requested), frozenset())


def claim_consistent(status: str, claimed_by_agent_id: str | None) -> bool:
    """A claim is held exactly while the status is claimed-or-later and non-terminal."""
    return (claimed_by_agent_id is not None) == (status in CLAIM_HELD_STATUSES)
