# eastlink/services/cart_service.py
from typing import List

from eastlink.core.errors import BadRequest, NotFound
from eastlink.utils.serializers import to_object_id, utcnow


def compute_totals(items: List[dict]) -> dict:
    """Full reduction over the cart lines; never updated incrementally."""
    return {
        "total_items": sum(item["quantity"] for item in items),
        "total_amount": round(sum(item["price"] * item["quantity"] for item in items), 2),
    }


def empty_cart(user_id) -> dict:
    return {"user": user_id, "items": [], "total_items": 0, "total_amount": 0, "updated_at": None}


def get_cart(db, user_id) -> dict:
    user_id = to_object_id(user_id, "user id")
    return db.carts.find_one({"user": user_id}) or empty_cart(user_id)


def save_cart(db, user_id, items: List[dict]) -> dict:
    user_id = to_object_id(user_id, "user id")
    cart = {"user": user_id, "items": items, **compute_totals(items), "updated_at": utcnow()}
    db.carts.replace_one({"user": user_id}, cart, upsert=True)
    return db.carts.find_one({"user": user_id})


def _main_image(product: dict):
    images = product.get("images") or []
    for image in images:
        if image.get("is_main"):
            return image.get("url")
    return images[0].get("url") if images else None


def snapshot(product: dict, quantity: int) -> dict:
    return {
        "product": product["_id"],
        "name": product["name"],
        "price": product["price"],
        "image": _main_image(product),
        "seller": product["seller"],
        "quantity": quantity,
        "added_at": utcnow(),
    }


def add_item(db, user_id, product_id: str, quantity: int = 1) -> dict:
    if quantity < 1:
        raise BadRequest("Quantity must be at least 1")
    pid = to_object_id(product_id, "product id")
    product = db.products.find_one({"_id": pid})
    if not product:
        raise NotFound("Product not found")
    if not product.get("is_active", True):
        raise BadRequest("Product is not available")

    items = list(get_cart(db, user_id)["items"])
    for item in items:
        if item["product"] == pid:
            item["quantity"] += quantity
            # refresh the snapshot price to the current one
            item["price"] = product["price"]
            break
    else:
        items.append(snapshot(product, quantity))
    return save_cart(db, user_id, items)


def update_item(db, user_id, product_id: str, quantity: int) -> dict:
    pid = to_object_id(product_id, "product id")
    items = list(get_cart(db, user_id)["items"])
    index = next((i for i, item in enumerate(items) if item["product"] == pid), None)
    if index is None:
        raise NotFound("Item not found in cart")
    if quantity <= 0:
        items.pop(index)
    else:
        items[index]["quantity"] = quantity
    return save_cart(db, user_id, items)


def remove_item(db, user_id, product_id: str) -> dict:
    pid = to_object_id(product_id, "product id")
    items = [item for item in get_cart(db, user_id)["items"] if item["product"] != pid]
    return save_cart(db, user_id, items)


def clear_cart(db, user_id) -> dict:
    return save_cart(db, user_id, [])
