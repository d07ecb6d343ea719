# eastlink/api/users.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pymongo import DESCENDING
from pymongo.database import Database

from eastlink.api import notifications
from eastlink.api.deps import approved, get_current_user
from eastlink.db.mongo import get_db
from eastlink.models.schemas import AvatarUpdate, PreferencesUpdate, WishlistAdd
from eastlink.services import analytics_service, users_service
from eastlink.services.products_service import SELLER_PUBLIC
from eastlink.utils.pagination import clamp, page_meta, paginate_list
from eastlink.utils.sanitize import search_regex
from eastlink.utils.serializers import ok, populate, to_object_id, utcnow

router = APIRouter(prefix="/users", tags=["Users"])

SELLER_SORTS = ("ratings.average", "created_at", "business_name", "product_count", "total_sales")


# --- Public ---

@router.get("/sellers")
def list_sellers(
    page: int = 1,
    limit: int = 12,
    category: Optional[str] = None,
    location: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "ratings.average",
    sort_order: str = "desc",
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {"role": "seller", "is_active": True, "is_approved": True}
    if location and location != "all":
        query["address.city"] = location
    if search and search.strip():
        pattern = search_regex(search)
        query["$or"] = [{"business_name": pattern}, {"first_name": pattern}, {"last_name": pattern}]

    sellers = list(db.users.find(query))
    product_query: Dict[str, Any] = {"seller": {"$in": [s["_id"] for s in sellers]}, "is_active": True}
    if category and category != "all":
        product_query["category"] = category
    counts: Dict = {}
    for product in db.products.find(product_query, {"seller": 1}):
        counts[product["seller"]] = counts.get(product["seller"], 0) + 1

    if category and category != "all":
        sellers = [s for s in sellers if counts.get(s["_id"])]
    for seller in sellers:
        seller["product_count"] = counts.get(seller["_id"], 0)
        seller["total_sales"] = analytics_service.seller_totals(db, seller["_id"])["total_sales"]

    if sort_by not in SELLER_SORTS:
        sort_by = "ratings.average"

    def sort_key(seller):
        value = seller
        for part in sort_by.split("."):
            value = (value or {}).get(part)
        return value if value is not None else 0

    sellers.sort(key=sort_key, reverse=sort_order != "asc")
    items, meta = paginate_list(sellers, page, limit)
    return ok({"sellers": items, **meta})


@router.get("/sellers/{seller_id}")
def get_seller(seller_id: str, db: Database = Depends(get_db)):
    seller = db.users.find_one({
        "_id": to_object_id(seller_id, "seller id"),
        "role": "seller",
        "is_active": True,
        "is_approved": True,
    })
    if not seller:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Seller not found")

    products = list(db.products.find({"seller": seller["_id"], "is_active": True}).sort("created_at", DESCENDING))
    totals = analytics_service.seller_totals(db, seller["_id"])
    seller.update({
        "products": products,
        "product_count": len(products),
        "stats": {"total_orders": totals["total_orders"], "total_revenue": totals["total_revenue"]},
    })
    return ok(seller)


# --- Account ---

@router.get("/dashboard")
def dashboard(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    data = {"user": user}
    build = analytics_service.DASHBOARDS.get(user.get("role"))
    if build:
        data.update(build(db, user))
    return ok(data)


@router.put("/avatar")
def update_avatar(payload: AvatarUpdate, user: Dict[str, Any] = Depends(get_current_user),
                  db: Database = Depends(get_db)):
    db.users.update_one({"_id": user["_id"]}, {"$set": {"avatar": payload.avatar, "updated_at": utcnow()}})
    return ok({"avatar": payload.avatar}, "Avatar updated successfully")


@router.put("/preferences")
def update_preferences(payload: PreferencesUpdate, user: Dict[str, Any] = Depends(get_current_user),
                       db: Database = Depends(get_db)):
    preferences = users_service.merge_preferences(user.get("preferences"), payload.model_dump(exclude_none=True))
    db.users.update_one({"_id": user["_id"]}, {"$set": {"preferences": preferences, "updated_at": utcnow()}})
    return ok(preferences, "Preferences updated successfully")


# --- Wishlist ---

@router.get("/wishlist")
def get_wishlist(page: int = 1, limit: int = 12, user: Dict[str, Any] = Depends(get_current_user),
                 db: Database = Depends(get_db)):
    ids = user.get("wishlist") or []
    page, limit = clamp(page, limit)
    window = ids[(page - 1) * limit:page * limit]
    found = {p["_id"]: p for p in db.products.find({"_id": {"$in": window}})}
    items = [found[pid] for pid in window if pid in found]
    populate(db, items, "seller", "users", SELLER_PUBLIC)
    return ok({"items": items, **page_meta(len(ids), page, limit)})


@router.post("/wishlist")
def add_wishlist(payload: WishlistAdd, user: Dict[str, Any] = Depends(get_current_user),
                 db: Database = Depends(get_db)):
    count = users_service.add_to_wishlist(db, user, payload.product_id)
    return ok({"wishlist_count": count}, "Product added to wishlist")


@router.delete("/wishlist/{product_id}")
def remove_wishlist(product_id: str, user: Dict[str, Any] = Depends(get_current_user),
                    db: Database = Depends(get_db)):
    count = users_service.remove_from_wishlist(db, user, product_id)
    return ok({"wishlist_count": count}, "Product removed from wishlist")


@router.delete("/wishlist")
def clear_wishlist(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    db.users.update_one({"_id": user["_id"]}, {"$set": {"wishlist": []}})
    return ok(message="Wishlist cleared successfully")


@router.get("/analytics")
def analytics(period: str = Query("30d", pattern="^(7d|30d|90d)$"),
              user: Dict[str, Any] = Depends(approved("seller")),
              db: Database = Depends(get_db)):
    return ok(analytics_service.seller_analytics(db, user["_id"], period))


# notification aliases
router.add_api_route("/notifications", notifications.list_notifications, methods=["GET"])
router.add_api_route("/notifications/{notification_id}/read", notifications.mark_read, methods=["PUT"])
