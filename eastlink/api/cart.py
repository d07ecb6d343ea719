# eastlink/api/cart.py
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pymongo.database import Database

from eastlink.api.deps import get_current_user
from eastlink.db.mongo import get_db
from eastlink.models.schemas import CartAdd, CartUpdate
from eastlink.services import cart_service
from eastlink.utils.serializers import ok

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("/")
def get_cart(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return ok(cart_service.get_cart(db, user["_id"]))


@router.post("/add")
def add_to_cart(payload: CartAdd, user: Dict[str, Any] = Depends(get_current_user),
                db: Database = Depends(get_db)):
    cart = cart_service.add_item(db, user["_id"], payload.product_id, payload.quantity)
    return ok(cart, "Item added to cart")


@router.put("/{product_id}")
def update_cart_item(product_id: str, payload: CartUpdate,
                     user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = cart_service.update_item(db, user["_id"], product_id, payload.quantity)
    return ok(cart, "Cart updated")


@router.delete("/{product_id}")
def remove_from_cart(product_id: str, user: Dict[str, Any] = Depends(get_current_user),
                     db: Database = Depends(get_db)):
    return ok(cart_service.remove_item(db, user["_id"], product_id), "Item removed from cart")


@router.delete("/")
def clear_cart(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return ok(cart_service.clear_cart(db, user["_id"]), "Cart cleared")
