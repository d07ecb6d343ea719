# eastlink/api/admin.py
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pymongo.database import Database

from eastlink.api.deps import require_admin
from eastlink.api.orders import queue_status_email
from eastlink.db.mongo import get_db
from eastlink.models.schemas import AdminOrderUpdate, ProductStatusAction, UserStatusAction
from eastlink.services import analytics_service, orders_service, products_service
from eastlink.services.users_service import get_user
from eastlink.utils.email import send_email
from eastlink.utils.pagination import paginate
from eastlink.utils.sanitize import search_regex
from eastlink.utils.serializers import ok, utcnow

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

USER_STATUS = {
    "active": {"is_active": True},
    "inactive": {"is_active": False},
    "approved": {"is_approved": True},
    "pending": {"is_approved": False},
}
USER_ACTIONS = {
    "approve": {"is_approved": True},
    "reject": {"is_approved": False},
    "activate": {"is_active": True},
    "deactivate": {"is_active": False},
}
PRODUCT_STATUS = {
    "active": {"is_active": True},
    "inactive": {"is_active": False},
    "featured": {"is_featured": True},
}
PRODUCT_ACTIONS = {
    "activate": {"is_active": True},
    "deactivate": {"is_active": False},
    "feature": {"is_featured": True},
    "unfeature": {"is_featured": False},
}


def _past(action: str) -> str:
    return action + ("d" if action.endswith("e") else "ed")


@router.get("/stats")
def platform_stats(db: Database = Depends(get_db)):
    return ok(analytics_service.platform_stats(db))


# --- Users ---

@router.get("/users")
def list_users(
    page: int = 1,
    limit: int = 10,
    role: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {}
    if role and role != "all":
        query["role"] = role
    query.update(USER_STATUS.get(status_filter, {}))
    if search and search.strip():
        pattern = search_regex(search)
        query["$or"] = [{"first_name": pattern}, {"last_name": pattern},
                        {"email": pattern}, {"business_name": pattern}]
    users, meta = paginate(db.users, query, page, limit, projection={"password": 0})
    return ok({"users": users, **meta})


@router.put("/users/{user_id}/status")
def update_user_status(user_id: str, payload: UserStatusAction, background_tasks: BackgroundTasks,
                       db: Database = Depends(get_db)):
    user = get_user(db, user_id)
    updates = {**USER_ACTIONS[payload.action], "updated_at": utcnow()}
    db.users.update_one({"_id": user["_id"]}, {"$set": updates})
    user.update(updates)

    if payload.action == "approve" and user.get("role") == "seller":
        background_tasks.add_task(send_email, user["email"], "seller_approval", user)
    return ok(user, f"User {_past(payload.action)} successfully")


@router.delete("/users/{user_id}")
def delete_user(user_id: str, db: Database = Depends(get_db)):
    user = get_user(db, user_id)
    if user.get("role") == "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot delete admin users")
    db.users.delete_one({"_id": user["_id"]})
    db.carts.delete_one({"user": user["_id"]})
    db.notifications.delete_many({"user": user["_id"]})
    return ok(message="User deleted successfully")


# --- Orders ---

@router.get("/orders")
def list_orders(
    page: int = 1,
    limit: int = 10,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {}
    if status_filter and status_filter != "all":
        query["order_status"] = status_filter
    if search and search.strip():
        query["order_number"] = search_regex(search)
    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = start_date.replace(tzinfo=None)
        if end_date:
            query["created_at"]["$lte"] = end_date.replace(tzinfo=None)

    orders, meta = paginate(db.orders, query, page, limit)
    orders_service.populate_order(db, orders)
    return ok({"orders": orders, **meta})


@router.put("/orders/{order_id}/status")
def update_order(order_id: str, payload: AdminOrderUpdate, background_tasks: BackgroundTasks,
                 admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    order = orders_service.admin_update(
        db, orders_service.get_order(db, order_id), admin,
        agent_id=payload.delivery_agent_id, target=payload.status, message=payload.message,
    )
    if payload.status:
        queue_status_email(background_tasks, db, order)
    return ok(orders_service.populate_order(db, order)[0], "Order updated successfully")


@router.get("/delivery-agents")
def delivery_agents(db: Database = Depends(get_db)):
    agents = list(db.users.find(
        {"role": "delivery_agent", "is_active": True, "is_approved": True},
        {"first_name": 1, "last_name": 1, "phone": 1, "vehicle_type": 1, "ratings": 1,
         "is_available": 1, "address": 1, "earnings": 1},
    ))
    return ok(agents)


# --- Products ---

@router.get("/products")
def list_products(
    page: int = 1,
    limit: int = 12,
    category: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {}
    if category and category != "all":
        query["category"] = category
    query.update(PRODUCT_STATUS.get(status_filter, {}))
    if search and search.strip():
        pattern = search_regex(search)
        query["$or"] = [{"name": pattern}, {"description": pattern}]

    products, meta = paginate(db.products, query, page, limit, projection={"reviews": 0})
    products_service.with_sellers(db, products)
    return ok({"products": products, **meta})


@router.put("/products/{product_id}/status")
def update_product_status(product_id: str, payload: ProductStatusAction, db: Database = Depends(get_db)):
    product = products_service.get_product(db, product_id)
    updates = {**PRODUCT_ACTIONS[payload.action], "updated_at": utcnow()}
    db.products.update_one({"_id": product["_id"]}, {"$set": updates})
    product.update(updates)
    return ok(product, f"Product {_past(payload.action)} successfully")


@router.delete("/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    product = products_service.get_product(db, product_id)
    db.products.delete_one({"_id": product["_id"]})
    return ok(message="Product deleted successfully")
