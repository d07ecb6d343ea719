# eastlink/services/orders_service.py
import logging
import random
import time
from typing import List, Optional, Tuple

from eastlink.core.config import settings
from eastlink.core.errors import BadRequest, Conflict, Forbidden, InsufficientStock, NotFound
from eastlink.core.logging import business_log
from eastlink.services import cart_service
from eastlink.services.notifications_service import create_notification, notify_admins, notify_many
from eastlink.services.order_status import ASSIGNABLE, RESTOCK_ON, apply_transition, tracking_update, validate_transition
from eastlink.utils.sanitize import mongo_safe
from eastlink.utils.serializers import USER_SUMMARY, populate, to_object_id, utcnow

logger = logging.getLogger("eastlink.orders")

PRODUCT_SUMMARY = {"name": 1, "price": 1, "images": 1, "weight": 1}
SELLER_SUMMARY = {"business_name": 1, "first_name": 1, "last_name": 1, "phone": 1, "address": 1}
AGENT_SUMMARY = {"first_name": 1, "last_name": 1, "phone": 1, "vehicle_type": 1}


def delivery_fee_for(city: str) -> int:
    return settings.DELIVERY_FEES.get(city, settings.DEFAULT_DELIVERY_FEE)


def generate_order_number() -> str:
    timestamp = str(int(time.time() * 1000))
    return f"EL{timestamp[-6:]}{random.randint(0, 999):03d}"


def _unique_order_number(db) -> str:
    number = generate_order_number()
    while db.orders.find_one({"order_number": number}, {"_id": 1}):
        number = generate_order_number()
    return number


# --- Stock ---

def release_stock(db, items: List[dict]):
    """Give reserved units back to the products of ``items``."""
    for item in items:
        db.products.update_one(
            {"_id": item["product"]},
            {"$inc": {"stock": item["quantity"], "sales_count": -item["quantity"]}},
        )


def reserve_stock(db, requested: List[dict]) -> Tuple[List[dict], float]:
    """Check and atomically decrement stock for every requested line.

    ``requested`` holds ``{"product_id", "quantity"}`` entries. Returns the
    order lines (priced at the live product price) and their total. When any
    line fails, everything reserved so far is released before raising.
    """
    reserved: List[dict] = []
    total = 0.0
    try:
        for line in requested:
            pid = to_object_id(line["product_id"], "product id")
            quantity = int(line["quantity"])
            product = db.products.find_one({"_id": pid})
            if not product:
                raise NotFound(f"Product {line['product_id']} not found")
            if not product.get("is_active", True):
                raise BadRequest(f"Product {product['name']} is not available")
            if quantity < product.get("min_order_quantity", 1):
                raise BadRequest(
                    f"Minimum order quantity for {product['name']} is {product.get('min_order_quantity', 1)}"
                )
            if quantity > product.get("max_order_quantity", 100):
                raise BadRequest(
                    f"Maximum order quantity for {product['name']} is {product.get('max_order_quantity', 100)}"
                )

            # conditional decrement, two buyers cannot take the same unit
            result = db.products.update_one(
                {"_id": pid, "is_active": True, "stock": {"$gte": quantity}},
                {"$inc": {"stock": -quantity, "sales_count": quantity}},
            )
            if result.modified_count != 1:
                raise InsufficientStock(f"Insufficient stock for {product['name']}")

            reserved.append({
                "product": pid,
                "quantity": quantity,
                "price": product["price"],
                "seller": product["seller"],
            })
            total += product["price"] * quantity
    except Exception:
        release_stock(db, reserved)
        raise
    return reserved, round(total, 2)


def low_stock_products(db, items: List[dict]) -> List[dict]:
    ids = [item["product"] for item in items]
    return list(db.products.find({"_id": {"$in": ids}, "stock": {"$lte": settings.LOW_STOCK_THRESHOLD}}))


# --- Reading ---

def populate_order(db, orders) -> List[dict]:
    if isinstance(orders, dict):
        orders = [orders]
    populate(db, orders, "customer", "users", USER_SUMMARY)
    populate(db, orders, "product", "products", PRODUCT_SUMMARY, many_path="items")
    populate(db, orders, "seller", "users", SELLER_SUMMARY, many_path="items")
    populate(db, orders, "delivery_agent", "users", AGENT_SUMMARY)
    return orders


def get_order(db, order_id) -> dict:
    order = db.orders.find_one({"_id": to_object_id(order_id, "order id")})
    if not order:
        raise NotFound("Order not found")
    return order


def seller_ids(order: dict) -> set:
    ids = set()
    for item in order.get("items", []):
        seller = item.get("seller")
        ids.add(seller["_id"] if isinstance(seller, dict) else seller)
    return ids


def can_view(order: dict, user: dict) -> bool:
    uid = user["_id"]
    return (
        user.get("role") == "admin"
        or order.get("customer") == uid
        or uid in seller_ids(order)
        or order.get("delivery_agent") == uid
    )


# --- Writing ---

def place_order(db, customer: dict, requested: List[dict], delivery_address: dict,
                payment_method: str = "cash_on_delivery", notes: Optional[dict] = None,
                is_urgent: bool = False) -> dict:
    if not requested:
        raise BadRequest("Order must contain at least one item")

    items, total = reserve_stock(db, requested)
    fee = delivery_fee_for(delivery_address.get("city"))
    now = utcnow()
    order = {
        "order_number": _unique_order_number(db),
        "customer": customer["_id"],
        "items": items,
        "total_amount": total,
        "delivery_fee": fee,
        "final_amount": round(total + fee, 2),
        "payment_method": payment_method,
        "payment_status": "pending",
        "order_status": "pending",
        "delivery_address": mongo_safe(delivery_address),
        "delivery_agent": None,
        "estimated_delivery_time": None,
        "actual_delivery_time": None,
        "tracking_updates": [tracking_update("pending", "Order placed")],
        "notes": mongo_safe(notes or {}),
        "issues": [],
        "cancellation_reason": None,
        "refund_amount": 0,
        "is_urgent": is_urgent,
        "created_at": now,
        "updated_at": now,
    }
    try:
        order["_id"] = db.orders.insert_one(order).inserted_id
    except Exception:
        release_stock(db, items)
        raise

    business_log.order_created(str(order["_id"]), str(customer["_id"]), order["final_amount"])
    notify_many(
        db, [item["seller"] for item in items], "new_order", "New Order",
        f"You have a new order {order['order_number']}", {"order_id": str(order["_id"])},
    )
    return order


def checkout_cart(db, customer: dict, delivery_address: dict, payment_method: str = "cash_on_delivery",
                  notes: Optional[dict] = None, is_urgent: bool = False) -> dict:
    cart = cart_service.get_cart(db, customer["_id"])
    if not cart["items"]:
        raise BadRequest("Cart is empty")
    requested = [{"product_id": item["product"], "quantity": item["quantity"]} for item in cart["items"]]
    order = place_order(db, customer, requested, delivery_address, payment_method, notes, is_urgent)
    cart_service.clear_cart(db, customer["_id"])
    return order


def transition(db, order: dict, target: str, actor: dict, message: Optional[str] = None,
               location: Optional[dict] = None, extra: Optional[dict] = None,
               match: Optional[dict] = None) -> dict:
    """Validate and apply a status change; returns the updated order.

    The write only matches while the order still has the status it was
    validated against, the loser of a race gets ``Conflict``.
    """
    current = order["order_status"]
    validate_transition(current, target, actor.get("role"))

    update = apply_transition(order, target, message, location, extra)
    result = db.orders.update_one({"_id": order["_id"], "order_status": current, **(match or {})}, update)
    if result.modified_count != 1:
        raise Conflict("Order was updated by someone else, please retry")

    if target in RESTOCK_ON:
        release_stock(db, order["items"])
    if target == "delivered" and order.get("payment_method") == "cash_on_delivery":
        business_log.payment_processed(str(order["_id"]), order.get("final_amount", 0), "cash_on_delivery")

    logger.info(f"Order {order['order_number']} {current} -> {target} by {actor.get('role')} {actor['_id']}")
    create_notification(
        db, order["customer"], "order_update", "Order Update",
        f"Your order {order['order_number']} is now {target.replace('_', ' ')}",
        {"order_id": str(order["_id"]), "status": target},
    )
    return db.orders.find_one({"_id": order["_id"]})


def update_status(db, order_id, target: str, actor: dict, message: Optional[str] = None) -> dict:
    order = get_order(db, order_id)
    if actor.get("role") != "admin" and actor["_id"] not in seller_ids(order):
        raise Forbidden("Not authorized to update this order")
    return transition(db, order, target, actor, message)


def cancel_order(db, order_id, customer: dict, reason: Optional[str] = None) -> dict:
    order = get_order(db, order_id)
    if order["customer"] != customer["_id"]:
        raise Forbidden("Not authorized to cancel this order")
    reason = reason or "No reason given"
    return transition(
        db, order, "cancelled", {**customer, "role": "customer"},
        f"Order cancelled by customer. Reason: {reason}",
        extra={"cancellation_reason": reason},
    )


def eligible_agent(db, agent_id) -> dict:
    agent = db.users.find_one({"_id": to_object_id(agent_id, "delivery_agent_id")})
    if not agent or agent.get("role") != "delivery_agent":
        raise NotFound("Delivery agent not found")
    if not agent.get("is_approved") or not agent.get("is_active", True):
        raise BadRequest("Delivery agent is not approved or inactive")
    return agent


def check_assignable(order: dict):
    if order["order_status"] not in ASSIGNABLE:
        raise BadRequest(f"Cannot assign a delivery agent to a {order['order_status']} order")


def assign_agent(db, order: dict, agent: dict, actor: dict) -> dict:
    check_assignable(order)
    result = db.orders.update_one(
        {"_id": order["_id"], "order_status": order["order_status"], "delivery_agent": order.get("delivery_agent")},
        {
            "$set": {"delivery_agent": agent["_id"], "updated_at": utcnow()},
            "$push": {"tracking_updates": tracking_update(
                "assigned", f"Delivery agent assigned by {actor.get('role')}"
            )},
        },
    )
    if result.modified_count != 1:
        raise Conflict("Order was updated by someone else, please retry")
    create_notification(
        db, agent["_id"], "delivery_assigned", "New Delivery Assigned",
        f"Order {order['order_number']} has been assigned to you", {"order_id": str(order["_id"])},
    )
    return db.orders.find_one({"_id": order["_id"]})


def admin_update(db, order: dict, admin: dict, agent_id=None, target: Optional[str] = None,
                 message: Optional[str] = None) -> dict:
    """Agent assignment and/or status change; every check runs before the first write."""
    agent = eligible_agent(db, agent_id) if agent_id else None
    if agent:
        check_assignable(order)
    if target:
        validate_transition(order["order_status"], target, admin.get("role"))

    if agent:
        order = assign_agent(db, order, agent, admin)
    if target:
        order = transition(db, order, target, admin, message or f"Order {target} by admin")
    return order


# --- Delivery ---

def agent_order(db, order_id, agent: dict) -> dict:
    order = get_order(db, order_id)
    if order.get("delivery_agent") != agent["_id"]:
        raise Forbidden("Not authorized to update this delivery")
    return order


def accept_delivery(db, order_id, agent: dict) -> dict:
    order = get_order(db, order_id)
    assigned = order.get("delivery_agent")
    if assigned and assigned != agent["_id"]:
        raise BadRequest("Order already assigned to another agent")
    if order["order_status"] != "ready_for_pickup":
        raise BadRequest("Order is not ready for pickup")
    return transition(
        db, order, "dispatched", agent, "Order assigned to delivery agent",
        extra={"delivery_agent": agent["_id"]},
        match={"delivery_agent": assigned},
    )


def record_location(db, order_id, agent: dict, latitude: float, longitude: float):
    order = agent_order(db, order_id, agent)
    location = {"latitude": latitude, "longitude": longitude}
    db.orders.update_one(
        {"_id": order["_id"]},
        {
            "$set": {"updated_at": utcnow()},
            "$push": {"tracking_updates": tracking_update("location_update", "Location updated", location)},
        },
    )


def credit_agent(db, order: dict, agent: dict):
    earned = round(order.get("delivery_fee", 0) * settings.AGENT_FEE_SHARE, 2)
    db.users.update_one(
        {"_id": agent["_id"]},
        {"$inc": {"earnings.total": earned, "earnings.deliveries": 1}},
    )


def delivery_update(db, order_id, agent: dict, status: str, notes: Optional[str] = None,
                    location: Optional[dict] = None) -> dict:
    """Agent status report; ``picked_up`` means in transit, ``failed`` is recorded only."""
    order = agent_order(db, order_id, agent)
    if status == "failed":
        db.orders.update_one(
            {"_id": order["_id"]},
            {
                "$set": {"updated_at": utcnow()},
                "$push": {"tracking_updates": tracking_update(
                    "delivery_failed", notes or "Delivery attempt failed", location
                )},
            },
        )
        notify_admins(
            db, "delivery_failed", "Delivery Failed",
            f"Delivery of order {order['order_number']} failed", {"order_id": str(order["_id"])},
        )
        create_notification(
            db, order["customer"], "order_update", "Delivery Update",
            f"Delivery of your order {order['order_number']} could not be completed",
            {"order_id": str(order["_id"])},
        )
        return db.orders.find_one({"_id": order["_id"]})

    target = "in_transit" if status == "picked_up" else status
    updated = transition(db, order, target, agent, notes or f"Delivery {status.replace('_', ' ')}", location)
    if target == "delivered":
        credit_agent(db, order, agent)
    return updated


def complete_delivery(db, order_id, agent: dict, delivery_notes: Optional[str] = None,
                      customer_signature: Optional[str] = None) -> dict:
    order = agent_order(db, order_id, agent)
    extra = {}
    if delivery_notes:
        extra["notes.delivery"] = delivery_notes
    if customer_signature:
        extra["customer_signature"] = customer_signature
    updated = transition(db, order, "delivered", agent, "Order delivered successfully", extra=extra)
    credit_agent(db, order, agent)
    return updated


def report_issue(db, order_id, agent: dict, type: str, description: str) -> dict:
    order = agent_order(db, order_id, agent)
    now = utcnow()
    issue = {"type": type, "description": description, "reported_by": agent["_id"],
             "reported_at": now, "status": "open"}
    db.orders.update_one(
        {"_id": order["_id"]},
        {
            "$set": {"updated_at": now},
            "$push": {
                "issues": issue,
                "tracking_updates": tracking_update("issue_reported", f"Issue reported: {type} - {description}"),
            },
        },
    )
    notify_admins(
        db, "delivery_issue", "Delivery Issue Reported",
        f"Issue reported for order {order['order_number']}: {type}", {"order_id": str(order["_id"])},
    )
    return issue
