"""Order state machine: the single table of legal status transitions."""
from __future__ import annotations

from enum import Enum

from orderdesk.models.order import OrderStatus
from orderdesk.utils.errors import InvalidTransitionError, Unauthorized, ValidationError


class ActorRole(str, Enum):
    ADMIN = "admin"
    VENDOR = "vendor"
    SYSTEM = "system"


_ADMIN = frozenset({ActorRole.ADMIN})
_VENDOR = frozenset({ActorRole.VENDOR})

TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], frozenset[ActorRole]] = {
    (OrderStatus.PENDING_APPROVAL, OrderStatus.APPROVED): _ADMIN,
    (OrderStatus.PENDING_APPROVAL, OrderStatus.REJECTED): _ADMIN,
    (OrderStatus.APPROVED, OrderStatus.CONFIRMED): frozenset({ActorRole.SYSTEM, ActorRole.ADMIN}),
    (OrderStatus.APPROVED, OrderStatus.CANCELLED): _ADMIN,
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): _ADMIN,
    (OrderStatus.IN_PRODUCTION, OrderStatus.CANCELLED): _ADMIN,
    (OrderStatus.SHIPPED, OrderStatus.CANCELLED): _ADMIN,
    (OrderStatus.CONFIRMED, OrderStatus.IN_PRODUCTION): _VENDOR,
    (OrderStatus.IN_PRODUCTION, OrderStatus.SHIPPED): _VENDOR,
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): frozenset({ActorRole.VENDOR, ActorRole.ADMIN}),
}

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.REJECTED, OrderStatus.CANCELLED})


def coerce_status(value: OrderStatus | str) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown order status {value!r}.", code="INVALID_STATUS") from exc


def allowed_targets(current: OrderStatus) -> set[OrderStatus]:
    return {target for (source, target) in TRANSITIONS if source == current}


def is_legal(current: OrderStatus, target: OrderStatus) -> bool:
    return (current, target) in TRANSITIONS


def ensure_transition(current: OrderStatus, target: OrderStatus, role: ActorRole) -> None:
    """Raise unless ``role`` may move an order from ``current`` to ``target``."""

    roles = TRANSITIONS.get((current, target))
    if roles is None:
        raise InvalidTransitionError(
            f"Cannot move an order from {current.value} to {target.value}.",
            details={
                "from": current.value,
                "to": target.value,
                "allowed": sorted(status.value for status in allowed_targets(current)),
            },
        )
    if role not in roles:
        raise Unauthorized(
            f"Role {role.value} cannot move an order from {current.value} to {target.value}.",
            details={"from": current.value, "to": target.value},
        )


__all__ = [
    "ActorRole",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "allowed_targets",
    "coerce_status",
    "ensure_transition",
    "is_legal",
]
