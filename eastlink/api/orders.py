# eastlink/api/orders.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pymongo.database import Database

from eastlink.api.deps import approved, get_current_user, require_roles
from eastlink.db.mongo import get_db
from eastlink.models.schemas import CancelRequest, CheckoutRequest, DeliveryStatusUpdate, OrderCreate, StatusUpdate
from eastlink.services import orders_service
from eastlink.services.order_status import status_table
from eastlink.utils.email import send_email
from eastlink.utils.pagination import paginate
from eastlink.utils.serializers import ok, populate

router = APIRouter(prefix="/orders", tags=["Orders"])


def queue_order_emails(background_tasks: BackgroundTasks, db: Database, order: dict, customer: dict):
    """Confirmation to the buyer, low stock alerts to the sellers."""
    background_tasks.add_task(send_email, customer["email"], "order_confirmation", order)
    for product in orders_service.low_stock_products(db, order["items"]):
        seller = db.users.find_one({"_id": product["seller"]}, {"email": 1, "first_name": 1})
        if seller:
            background_tasks.add_task(send_email, seller["email"], "low_stock",
                                      {"product": product, "seller": seller})


def queue_status_email(background_tasks: BackgroundTasks, db: Database, order: dict):
    customer = db.users.find_one({"_id": order["customer"]}, {"email": 1})
    if not customer:
        return
    agent = None
    if order.get("delivery_agent"):
        agent = db.users.find_one({"_id": order["delivery_agent"]}, {"first_name": 1, "last_name": 1, "phone": 1})
    background_tasks.add_task(send_email, customer["email"], "order_status_update",
                              {"order": order, "status": order["order_status"], "agent": agent})


def _list_orders(db: Database, query: dict, page: int, limit: int, status_filter: Optional[str]):
    if status_filter and status_filter != "all":
        query["order_status"] = status_filter
    orders, meta = paginate(db.orders, query, page, limit)
    orders_service.populate_order(db, orders)
    return ok({"orders": orders, **meta})


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    background_tasks: BackgroundTasks,
    customer: Dict[str, Any] = Depends(require_roles("customer")),
    db: Database = Depends(get_db),
):
    order = orders_service.place_order(
        db, customer,
        [item.model_dump() for item in payload.items],
        payload.delivery_address.model_dump(exclude_none=True),
        payload.payment_method,
        payload.notes.model_dump(exclude_none=True) if payload.notes else None,
        payload.is_urgent,
    )
    queue_order_emails(background_tasks, db, order, customer)
    return ok(orders_service.populate_order(db, order)[0], "Order created successfully")


@router.post("/checkout", status_code=status.HTTP_201_CREATED)
def checkout(
    payload: CheckoutRequest,
    background_tasks: BackgroundTasks,
    customer: Dict[str, Any] = Depends(require_roles("customer")),
    db: Database = Depends(get_db),
):
    order = orders_service.checkout_cart(
        db, customer,
        payload.delivery_address.model_dump(exclude_none=True),
        payload.payment_method,
        payload.notes.model_dump(exclude_none=True) if payload.notes else None,
        payload.is_urgent,
    )
    queue_order_emails(background_tasks, db, order, customer)
    return ok(orders_service.populate_order(db, order)[0], "Order created successfully")


@router.get("/my-orders")
def my_orders(page: int = 1, limit: int = 10, status_filter: Optional[str] = Query(None, alias="status"),
              user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return _list_orders(db, {"customer": user["_id"]}, page, limit, status_filter)


@router.get("/seller/orders")
def seller_orders(page: int = 1, limit: int = 10, status_filter: Optional[str] = Query(None, alias="status"),
                  seller: Dict[str, Any] = Depends(approved("seller")), db: Database = Depends(get_db)):
    return _list_orders(db, {"items.seller": seller["_id"]}, page, limit, status_filter)


@router.get("/delivery/orders")
def delivery_orders(page: int = 1, limit: int = 10, status_filter: Optional[str] = Query(None, alias="status"),
                    agent: Dict[str, Any] = Depends(approved("delivery_agent")), db: Database = Depends(get_db)):
    return _list_orders(db, {"delivery_agent": agent["_id"]}, page, limit, status_filter)


@router.get("/statuses")
def statuses():
    return ok(status_table())


@router.get("/{order_id}")
def get_order(order_id: str, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    order = orders_service.get_order(db, order_id)
    if not orders_service.can_view(order, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to view this order")
    return ok(orders_service.populate_order(db, order)[0])


@router.put("/{order_id}/status")
def update_order_status(
    order_id: str,
    payload: StatusUpdate,
    background_tasks: BackgroundTasks,
    user: Dict[str, Any] = Depends(approved("seller", "admin")),
    db: Database = Depends(get_db),
):
    order = orders_service.update_status(db, order_id, payload.status, user, payload.message)
    queue_status_email(background_tasks, db, order)
    return ok(orders_service.populate_order(db, order)[0], "Order status updated successfully")


@router.put("/{order_id}/cancel")
def cancel_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    payload: Optional[CancelRequest] = None,
    customer: Dict[str, Any] = Depends(require_roles("customer")),
    db: Database = Depends(get_db),
):
    reason = payload.reason if payload else None
    order = orders_service.cancel_order(db, order_id, customer, reason)
    queue_status_email(background_tasks, db, order)
    return ok(order, "Order cancelled successfully")


@router.put("/{order_id}/delivery-status")
def update_delivery_status(
    order_id: str,
    payload: DeliveryStatusUpdate,
    background_tasks: BackgroundTasks,
    agent: Dict[str, Any] = Depends(approved("delivery_agent")),
    db: Database = Depends(get_db),
):
    location = payload.location.model_dump() if payload.location else None
    order = orders_service.delivery_update(db, order_id, agent, payload.status, payload.notes, location)
    if payload.status != "failed":
        queue_status_email(background_tasks, db, order)
    return ok(order, "Delivery status updated successfully")


@router.get("/{order_id}/tracking")
def tracking(order_id: str, db: Database = Depends(get_db)):
    order = orders_service.get_order(db, order_id)
    populate(db, order, "delivery_agent", "users", orders_service.AGENT_SUMMARY)
    return ok({
        "order_number": order["order_number"],
        "current_status": order["order_status"],
        "tracking_updates": order.get("tracking_updates", []),
        "estimated_delivery_time": order.get("estimated_delivery_time"),
        "actual_delivery_time": order.get("actual_delivery_time"),
        "delivery_agent": order.get("delivery_agent"),
    })
