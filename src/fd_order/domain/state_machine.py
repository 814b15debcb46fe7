"""Order lifecycle tables.

Two static maps decide every status change, and both must agree:

    TRANSITIONS[current]   — statuses reachable from `current`
    ROLE_PERMISSIONS[role] — statuses a role may request at all

    placed ──► confirmed ──► preparing ──► ready ──► picked_up ──► out_for_delivery ──► delivered
      │            │             │           │
      └────────────┴─────────────┴───────────┴──► cancelled

`validate_tables()` runs at import so a malformed edit fails loudly on startup.
"""

from src.fd_common.enums import OrderStatus, UserRole

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PLACED: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.PICKED_UP, OrderStatus.CANCELLED}),
    OrderStatus.PICKED_UP: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

ROLE_PERMISSIONS: dict[UserRole, frozenset[OrderStatus]] = {
    UserRole.ADMIN: frozenset(
        {
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY,
            OrderStatus.CANCELLED,
        }
    ),
    UserRole.RIDER: frozenset(
        {OrderStatus.PICKED_UP, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED}
    ),
    UserRole.CUSTOMER: frozenset({OrderStatus.PLACED, OrderStatus.CANCELLED}),
}

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def parse_status(raw: str) -> OrderStatus | None:
    """Stored or requested status string → enum. None when unrecognized."""
    try:
        return OrderStatus(raw)
    except ValueError:
        return None


def can_request(role: UserRole, target: OrderStatus) -> bool:
    return target in ROLE_PERMISSIONS.get(role, frozenset())


def has_edge(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def validate_tables() -> None:
    """Raise ValueError if the tables are inconsistent."""
    missing = set(OrderStatus) - set(TRANSITIONS)
    if missing:
        raise ValueError(f"TRANSITIONS has no row for: {sorted(s.value for s in missing)}")
    for terminal in TERMINAL_STATUSES:
        if TRANSITIONS[terminal]:
            raise ValueError(f"terminal status {terminal.value} has outgoing edges")
    for current, targets in TRANSITIONS.items():
        for target in targets:
            if not isinstance(target, OrderStatus):
                raise ValueError(f"{current.value} -> {target!r} is not an OrderStatus")
    for role in UserRole:
        if role not in ROLE_PERMISSIONS:
            raise ValueError(f"ROLE_PERMISSIONS has no row for role {role.value}")
        for target in ROLE_PERMISSIONS[role]:
            if not isinstance(target, OrderStatus):
                raise ValueError(f"{role.value} may request unknown status {target!r}")


validate_tables()
