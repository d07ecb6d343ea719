# eastlink/api/delivery.py
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pymongo.database import Database

from eastlink.api.deps import approved
from eastlink.api.orders import queue_status_email
from eastlink.db.mongo import get_db
from eastlink.models.schemas import AvailabilityUpdate, CompleteDelivery, DeliveryStatusUpdate, IssueReport, Location
from eastlink.services import analytics_service, orders_service
from eastlink.utils.pagination import paginate
from eastlink.utils.serializers import ok, populate, utcnow

router = APIRouter(prefix="/delivery", tags=["Delivery"])

agent_only = approved("delivery_agent")


@router.get("/available")
def available_deliveries(page: int = 1, limit: int = 10, city: Optional[str] = None,
                         agent: Dict[str, Any] = Depends(agent_only), db: Database = Depends(get_db)):
    query: Dict[str, Any] = {"order_status": "ready_for_pickup", "delivery_agent": None}
    city = city or (agent.get("address") or {}).get("city")
    if city:
        query["delivery_address.city"] = city

    orders, meta = paginate(db.orders, query, page, limit)
    populate(db, orders, "customer", "users", {"first_name": 1, "last_name": 1, "phone": 1})
    populate(db, orders, "product", "products", {"name": 1, "price": 1, "weight": 1}, many_path="items")
    populate(db, orders, "seller", "users", orders_service.SELLER_SUMMARY, many_path="items")
    return ok({"orders": orders, **meta})


@router.post("/{order_id}/accept")
def accept_delivery(order_id: str, background_tasks: BackgroundTasks,
                    agent: Dict[str, Any] = Depends(agent_only), db: Database = Depends(get_db)):
    order = orders_service.accept_delivery(db, order_id, agent)
    queue_status_email(background_tasks, db, order)
    return ok(orders_service.populate_order(db, order)[0], "Delivery accepted successfully")


@router.put("/{order_id}/location")
def update_location(order_id: str, payload: Location,
                    agent: Dict[str, Any] = Depends(agent_only), db: Database = Depends(get_db)):
    orders_service.record_location(db, order_id, agent, payload.latitude, payload.longitude)
    return ok(message="Location updated successfully")


@router.put("/{order_id}/status")
def update_status(order_id: str, payload: DeliveryStatusUpdate, background_tasks: BackgroundTasks,
                  agent: Dict[str, Any] = Depends(agent_only), db: Database = Depends(get_db)):
    location = payload.location.model_dump() if payload.location else None
    order = orders_service.delivery_update(db, order_id, agent, payload.status, payload.notes, location)
    if payload.status != "failed":
        queue_status_email(background_tasks, db, order)
    return ok(order, "Delivery status updated successfully")


@router.post("/{order_id}/complete")
def complete_delivery(order_id: str, background_tasks: BackgroundTasks,
                      payload: Optional[CompleteDelivery] = None,
                      agent: Dict[str, Any] = Depends(agent_only), db: Database = Depends(get_db)):
    payload = payload or CompleteDelivery()
    order = orders_service.complete_delivery(db, order_id, agent, payload.delivery_notes,
                                             payload.customer_signature)
    queue_status_email(background_tasks, db, order)
    return ok(order, "Delivery completed successfully")


@router.get("/history")
def delivery_history(
    page: int = 1,
    limit: int = 10,
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    agent: Dict[str, Any] = Depends(agent_only),
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {"delivery_agent": agent["_id"]}
    if status_filter and status_filter != "all":
        query["order_status"] = status_filter
    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = start_date.replace(tzinfo=None)
        if end_date:
            query["created_at"]["$lte"] = end_date.replace(tzinfo=None)

    orders, meta = paginate(db.orders, query, page, limit)
    populate(db, orders, "customer", "users", {"first_name": 1, "last_name": 1, "phone": 1})
    populate(db, orders, "product", "products", {"name": 1, "price": 1}, many_path="items")
    return ok({"orders": orders, **meta})


@router.get("/stats")
def delivery_stats(period: str = Query("30d", pattern="^(7d|30d|90d)$"),
                   agent: Dict[str, Any] = Depends(agent_only), db: Database = Depends(get_db)):
    return ok(analytics_service.delivery_stats(db, agent["_id"], period))


@router.put("/availability")
def update_availability(payload: AvailabilityUpdate, agent: Dict[str, Any] = Depends(agent_only),
                        db: Database = Depends(get_db)):
    updates: Dict[str, Any] = {"is_available": payload.is_available, "updated_at": utcnow()}
    if payload.working_hours:
        updates["working_hours"] = payload.working_hours.model_dump()
    db.users.update_one({"_id": agent["_id"]}, {"$set": updates})
    return ok({
        "is_available": payload.is_available,
        "working_hours": updates.get("working_hours", agent.get("working_hours")),
    }, "Availability updated successfully")


@router.get("/earnings")
def earnings(period: str = Query("30d", pattern="^(7d|30d|90d)$"),
             agent: Dict[str, Any] = Depends(agent_only), db: Database = Depends(get_db)):
    return ok(analytics_service.delivery_earnings(db, agent["_id"], period))


@router.post("/{order_id}/issue")
def report_issue(order_id: str, payload: IssueReport,
                 agent: Dict[str, Any] = Depends(agent_only), db: Database = Depends(get_db)):
    orders_service.report_issue(db, order_id, agent, payload.type, payload.description)
    return ok(message="Issue reported successfully")
