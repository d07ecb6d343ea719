# eastlink/services/order_status.py
from enum import Enum
from typing import Dict, FrozenSet, Optional

from eastlink.core.errors import Forbidden, InvalidTransition
from eastlink.utils.serializers import utcnow


class OrderStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    preparing = "preparing"
    ready_for_pickup = "ready_for_pickup"
    dispatched = "dispatched"
    in_transit = "in_transit"
    delivered = "delivered"
    cancelled = "cancelled"


TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"accepted", "rejected", "cancelled"}),
    "accepted": frozenset({"preparing", "cancelled"}),
    "preparing": frozenset({"ready_for_pickup", "cancelled"}),
    "ready_for_pickup": frozenset({"dispatched"}),
    "dispatched": frozenset({"in_transit"}),
    "in_transit": frozenset({"delivered"}),
    "delivered": frozenset(),
    "rejected": frozenset(),
    "cancelled": frozenset(),
}

TERMINAL = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# statuses each role may move an order *into*; admin may do anything legal
ROLE_TARGETS: Dict[str, FrozenSet[str]] = {
    "customer": frozenset({"cancelled"}),
    "seller": frozenset({"accepted", "rejected", "preparing", "ready_for_pickup", "cancelled"}),
    "delivery_agent": frozenset({"dispatched", "in_transit", "delivered"}),
}

CUSTOMER_CANCELLABLE = frozenset({"pending", "accepted", "preparing"})

# statuses that give the reserved stock back
RESTOCK_ON = frozenset({"cancelled", "rejected"})

# an agent can be attached until the order is dispatched
ASSIGNABLE = frozenset({"pending", "accepted", "preparing", "ready_for_pickup"})

STATUS_DISPLAY: Dict[str, dict] = {
    "pending": {"label": "Pending", "color": "yellow", "icon": "clock"},
    "accepted": {"label": "Accepted", "color": "blue", "icon": "check"},
    "rejected": {"label": "Rejected", "color": "red", "icon": "x"},
    "preparing": {"label": "Preparing", "color": "indigo", "icon": "package"},
    "ready_for_pickup": {"label": "Ready for Pickup", "color": "purple", "icon": "box"},
    "dispatched": {"label": "Dispatched", "color": "orange", "icon": "truck"},
    "in_transit": {"label": "In Transit", "color": "orange", "icon": "navigation"},
    "delivered": {"label": "Delivered", "color": "green", "icon": "check-circle"},
    "cancelled": {"label": "Cancelled", "color": "gray", "icon": "x-circle"},
}

DEFAULT_MESSAGES = {
    "accepted": "Order accepted by seller",
    "rejected": "Order rejected by seller",
    "preparing": "Order is being prepared",
    "ready_for_pickup": "Order is ready for pickup",
    "dispatched": "Order dispatched",
    "in_transit": "Order is on the way",
    "delivered": "Order delivered successfully",
    "cancelled": "Order cancelled",
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def validate_transition(current: str, target: str, actor_role: str):
    """Raise if ``actor_role`` may not move an order from ``current`` to ``target``."""
    if target not in TRANSITIONS:
        raise InvalidTransition(f"Unknown order status: {target}")
    if current in TERMINAL:
        raise InvalidTransition(f"Order is already {current} and cannot be changed")
    if not can_transition(current, target):
        raise InvalidTransition(f"Cannot change order status from {current} to {target}")
    if actor_role == "admin":
        return
    if target not in ROLE_TARGETS.get(actor_role, frozenset()):
        raise Forbidden(f"A {actor_role} cannot set an order to {target}")
    if actor_role == "customer" and current not in CUSTOMER_CANCELLABLE:
        raise InvalidTransition("Order cannot be cancelled at this stage")


def tracking_update(status: str, message: Optional[str] = None, location: Optional[dict] = None) -> dict:
    update = {
        "status": status,
        "message": message or DEFAULT_MESSAGES.get(status, status),
        "timestamp": utcnow(),
    }
    if location:
        update["location"] = location
    return update


def apply_transition(order: dict, target: str, message: Optional[str] = None,
                     location: Optional[dict] = None, extra: Optional[dict] = None) -> dict:
    """Build the Mongo update moving ``order`` to ``target``.

    Callers must validate first and filter the write on the current status.
    """
    now = utcnow()
    set_fields = {"order_status": target, "updated_at": now}
    if target == "delivered":
        set_fields["actual_delivery_time"] = now
        set_fields["payment_status"] = "paid"
    if target == "cancelled":
        set_fields["cancellation_reason"] = message or order.get("cancellation_reason") or "Cancelled"
    if extra:
        set_fields.update(extra)
    return {
        "$set": set_fields,
        "$push": {"tracking_updates": tracking_update(target, message, location)},
    }


def status_table() -> dict:
    return {
        "statuses": [s.value for s in OrderStatus],
        "transitions": {k: sorted(v) for k, v in TRANSITIONS.items()},
        "display": STATUS_DISPLAY,
        "terminal": sorted(TERMINAL),
    }
