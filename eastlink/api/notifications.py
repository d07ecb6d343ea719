# eastlink/api/notifications.py
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from pymongo import DESCENDING
from pymongo.database import Database

from eastlink.api.deps import get_current_user
from eastlink.db.mongo import get_db
from eastlink.services.notifications_service import unread_count
from eastlink.utils.pagination import clamp
from eastlink.utils.serializers import ok, to_object_id, utcnow

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _owned(db: Database, notification_id: str, user: dict) -> dict:
    notification = db.notifications.find_one({
        "_id": to_object_id(notification_id, "notification id"),
        "user": user["_id"],
    })
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


@router.get("/")
def list_notifications(
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    page, limit = clamp(page, limit)
    query: Dict[str, Any] = {"user": user["_id"]}
    if unread_only:
        query["is_read"] = False

    notifications = list(
        db.notifications.find(query)
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    total = db.notifications.count_documents(query)
    return ok({
        "notifications": notifications,
        "has_more": page * limit < total,
        "total": total,
        "unread_count": unread_count(db, user["_id"]),
    })


@router.put("/mark-all-read")
def mark_all_read(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    result = db.notifications.update_many(
        {"user": user["_id"], "is_read": False},
        {"$set": {"is_read": True, "read_at": utcnow()}},
    )
    return ok({"updated": result.modified_count}, "All notifications marked as read")


@router.put("/{notification_id}/read")
def mark_read(notification_id: str, user: Dict[str, Any] = Depends(get_current_user),
              db: Database = Depends(get_db)):
    notification = _owned(db, notification_id, user)
    if not notification.get("is_read"):
        db.notifications.update_one(
            {"_id": notification["_id"]}, {"$set": {"is_read": True, "read_at": utcnow()}}
        )
    return ok(message="Notification marked as read")


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, user: Dict[str, Any] = Depends(get_current_user),
                        db: Database = Depends(get_db)):
    notification = _owned(db, notification_id, user)
    db.notifications.delete_one({"_id": notification["_id"]})
    return ok(message="Notification deleted")
