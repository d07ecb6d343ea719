# eastlink/services/users_service.py
from typing import Optional

from slugify import slugify

from eastlink.core.errors import BadRequest, NotFound
from eastlink.core.security import hash_password
from eastlink.utils.serializers import to_object_id, utcnow

DEFAULT_PREFERENCES = {
    "notifications": {"order_updates": True, "promotions": True, "newsletter": False, "sms": True, "email": True},
    "privacy": {"profile_visible": True, "activity_status": True},
    "language": "en",
    "currency": "ETB",
}


def unique_store_slug(db, business_name: str) -> str:
    base_slug = slugify(business_name) or "store"
    slug = base_slug
    counter = 1
    while db.users.find_one({"store_slug": slug}, {"_id": 1}):
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug


def new_user(db, data: dict) -> dict:
    """Build a users document from validated registration data."""
    role = data.get("role", "customer")
    now = utcnow()
    user = {
        **data,
        "email": data["email"].lower(),
        "password": hash_password(data["password"]),
        "role": role,
        "avatar": None,
        "is_active": True,
        "is_verified": False,
        # sellers and agents wait for an admin
        "is_approved": role not in ("seller", "delivery_agent"),
        "ratings": {"average": 0, "count": 0},
        "wishlist": [],
        "preferences": DEFAULT_PREFERENCES,
        "last_login": None,
        "created_at": now,
        "updated_at": now,
    }
    if role == "seller":
        user["store_slug"] = unique_store_slug(db, data["business_name"])
    if role == "delivery_agent":
        user["is_available"] = True
        user["earnings"] = {"total": 0, "deliveries": 0}
    return user


def get_user(db, user_id) -> dict:
    user = db.users.find_one({"_id": to_object_id(user_id, "user id")})
    if not user:
        raise NotFound("User not found")
    return user


def merge_preferences(current: Optional[dict], updates: dict) -> dict:
    merged = {**DEFAULT_PREFERENCES, **(current or {})}
    for section in ("notifications", "privacy"):
        if updates.get(section):
            merged[section] = {**merged.get(section, {}), **updates[section]}
    for key in ("language", "currency"):
        if updates.get(key):
            merged[key] = updates[key]
    return merged


# --- Wishlist ---

def add_to_wishlist(db, user: dict, product_id: str) -> int:
    pid = to_object_id(product_id, "product id")
    if not db.products.find_one({"_id": pid}, {"_id": 1}):
        raise NotFound("Product not found")
    wishlist = user.get("wishlist") or []
    if pid in wishlist:
        raise BadRequest("Product already in wishlist")
    db.users.update_one({"_id": user["_id"]}, {"$push": {"wishlist": pid}})
    return len(wishlist) + 1


def remove_from_wishlist(db, user: dict, product_id: str) -> int:
    pid = to_object_id(product_id, "product id")
    db.users.update_one({"_id": user["_id"]}, {"$pull": {"wishlist": pid}})
    return len([p for p in user.get("wishlist") or [] if p != pid])
