# eastlink/services/products_service.py
import logging
from typing import List, Optional

from bson import ObjectId

from eastlink.core.errors import BadRequest, Forbidden, NotFound
from eastlink.utils.sanitize import search_regex
from eastlink.utils.serializers import populate, to_object_id, utcnow

logger = logging.getLogger("eastlink.products")

SORT_FIELDS = ("created_at", "price", "name", "ratings.average", "sales_count", "view_count")
SELLER_PUBLIC = {"business_name": 1, "first_name": 1, "last_name": 1, "ratings": 1, "store_slug": 1}
REVIEWER = {"first_name": 1, "last_name": 1, "avatar": 1}


def visible_seller_ids(db) -> List[ObjectId]:
    """Sellers whose products may be listed: active and approved."""
    return [
        u["_id"]
        for u in db.users.find({"role": "seller", "is_active": True, "is_approved": True}, {"_id": 1})
    ]


def text_filter(term: str) -> dict:
    pattern = search_regex(term)
    return {"$or": [{"name": pattern}, {"description": pattern}, {"tags": pattern}]}


def listing_query(db, category: Optional[str] = None, search: Optional[str] = None,
                  min_price: Optional[float] = None, max_price: Optional[float] = None,
                  seller: Optional[str] = None, featured: Optional[bool] = None) -> dict:
    query: dict = {"is_active": True}
    sellers = visible_seller_ids(db)
    if seller:
        sid = to_object_id(seller, "seller")
        sellers = [sid] if sid in sellers else []
    query["seller"] = {"$in": sellers}

    if category and category != "all":
        query["category"] = category
    if search and search.strip():
        query.update(text_filter(search))
    if min_price is not None or max_price is not None:
        query["price"] = {}
        if min_price is not None:
            query["price"]["$gte"] = min_price
        if max_price is not None:
            query["price"]["$lte"] = max_price
    if featured:
        query["is_featured"] = True
    return query


def sort_spec(sort_by: str, sort_order: str) -> list:
    if sort_by not in SORT_FIELDS:
        sort_by = "created_at"
    return [(sort_by, 1 if sort_order == "asc" else -1)]


def with_sellers(db, products):
    return populate(db, products, "seller", "users", SELLER_PUBLIC)


def get_product(db, product_id) -> dict:
    product = db.products.find_one({"_id": to_object_id(product_id, "product id")})
    if not product:
        raise NotFound("Product not found")
    return product


def get_owned_product(db, product_id, seller: dict) -> dict:
    product = get_product(db, product_id)
    if product["seller"] != seller["_id"]:
        raise Forbidden("Not authorized to modify this product")
    return product


def image_list(urls: List[str], existing: Optional[list] = None) -> list:
    existing = existing or []
    has_main = any(img.get("is_main") for img in existing)
    images = []
    for i, url in enumerate(urls):
        images.append({"url": url, "public_id": None, "is_main": not has_main and i == 0})
    return images


def new_product(seller: dict, data: dict) -> dict:
    now = utcnow()
    product = {
        **data,
        "tags": data.get("tags") or [],
        "images": image_list(data.get("images") or []),
        "seller": seller["_id"],
        "is_active": True,
        "is_featured": False,
        "ratings": {"average": 0, "count": 0},
        "reviews": [],
        "view_count": 0,
        "sales_count": 0,
        "created_at": now,
        "updated_at": now,
    }
    return product


def category_stats(db) -> List[dict]:
    """Active product count and average price per category."""
    buckets: dict = {}
    for product in db.products.find({"is_active": True}, {"category": 1, "price": 1}):
        bucket = buckets.setdefault(product.get("category"), {"count": 0, "price_sum": 0.0})
        bucket["count"] += 1
        bucket["price_sum"] += product.get("price", 0)
    stats = [
        {"category": name, "count": b["count"], "avg_price": round(b["price_sum"] / b["count"], 2)}
        for name, b in buckets.items()
    ]
    return sorted(stats, key=lambda s: s["count"], reverse=True)


# --- Reviews ---

def recompute_rating(reviews: list) -> dict:
    if not reviews:
        return {"average": 0, "count": 0}
    average = sum(r["rating"] for r in reviews) / len(reviews)
    return {"average": round(average, 1), "count": len(reviews)}


def _save_reviews(db, product_id, reviews: list):
    db.products.update_one(
        {"_id": product_id},
        {"$set": {"reviews": reviews, "ratings": recompute_rating(reviews), "updated_at": utcnow()}},
    )


def has_purchased(db, user_id, product_id) -> bool:
    return db.orders.find_one({
        "customer": user_id,
        "items.product": product_id,
        "order_status": "delivered",
    }, {"_id": 1}) is not None


def add_review(db, product_id, user: dict, rating: int, comment: Optional[str]) -> dict:
    product = get_product(db, product_id)
    if not has_purchased(db, user["_id"], product["_id"]):
        raise Forbidden("You can only review products you have purchased")
    reviews = product.get("reviews", [])
    if any(r["user"] == user["_id"] for r in reviews):
        raise BadRequest("You have already reviewed this product")

    now = utcnow()
    review = {"_id": ObjectId(), "user": user["_id"], "rating": rating, "comment": comment,
              "created_at": now, "updated_at": now}
    reviews = reviews + [review]
    _save_reviews(db, product["_id"], reviews)
    logger.info(f"Review {review['_id']} added to product {product['_id']} by {user['_id']}")
    return get_product(db, product["_id"])


def _find_review(product: dict, review_id, user: dict):
    rid = to_object_id(review_id, "review id")
    reviews = product.get("reviews", [])
    index = next((i for i, r in enumerate(reviews) if r["_id"] == rid), None)
    if index is None:
        raise NotFound("Review not found")
    if reviews[index]["user"] != user["_id"]:
        raise Forbidden("Not authorized to modify this review")
    return reviews, index


def update_review(db, product_id, review_id, user: dict, rating: int, comment: Optional[str]) -> dict:
    product = get_product(db, product_id)
    reviews, index = _find_review(product, review_id, user)
    reviews[index].update({"rating": rating, "comment": comment, "updated_at": utcnow()})
    _save_reviews(db, product["_id"], reviews)
    return reviews[index]


def delete_review(db, product_id, review_id, user: dict):
    product = get_product(db, product_id)
    reviews, index = _find_review(product, review_id, user)
    reviews.pop(index)
    _save_reviews(db, product["_id"], reviews)
