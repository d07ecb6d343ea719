# eastlink/services/notifications_service.py
import logging
from typing import Iterable, Optional

from pymongo import DESCENDING

from eastlink.utils.serializers import to_object_id, utcnow

logger = logging.getLogger("eastlink.notifications")

MAX_PER_USER = 100


def create_notification(db, user_id, type: str, title: str, message: str, data: Optional[dict] = None) -> dict:
    user_id = to_object_id(user_id, "user id")
    notification = {
        "user": user_id,
        "type": type,
        "title": title,
        "message": message,
        "data": data or {},
        "is_read": False,
        "read_at": None,
        "created_at": utcnow(),
    }
    notification["_id"] = db.notifications.insert_one(notification).inserted_id

    # keep only the newest MAX_PER_USER
    stale = list(
        db.notifications.find({"user": user_id}, {"_id": 1})
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .skip(MAX_PER_USER)
    )
    if stale:
        db.notifications.delete_many({"_id": {"$in": [d["_id"] for d in stale]}})

    logger.debug(f"Notification '{type}' created for user {user_id}")
    return notification


def notify_many(db, user_ids: Iterable, type: str, title: str, message: str, data: Optional[dict] = None):
    for user_id in set(user_ids):
        create_notification(db, user_id, type, title, message, data)


def notify_admins(db, type: str, title: str, message: str, data: Optional[dict] = None):
    admin_ids = [u["_id"] for u in db.users.find({"role": "admin", "is_active": True}, {"_id": 1})]
    notify_many(db, admin_ids, type, title, message, data)


def unread_count(db, user_id) -> int:
    return db.notifications.count_documents({"user": to_object_id(user_id), "is_read": False})
