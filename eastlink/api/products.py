# eastlink/api/products.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pymongo import DESCENDING
from pymongo.database import Database

from eastlink.api.deps import approved, get_current_user
from eastlink.core.logging import business_log
from eastlink.db.mongo import get_db
from eastlink.models.schemas import ProductCreate, ProductUpdate, ReviewCreate
from eastlink.services import products_service
from eastlink.utils.pagination import paginate
from eastlink.utils.serializers import ok, populate, utcnow

router = APIRouter(prefix="/products", tags=["Products"])

MY_PRODUCT_FILTERS = {
    "active": {"is_active": True},
    "inactive": {"is_active": False},
    "featured": {"is_featured": True},
}


@router.get("/")
def list_products(
    page: int = 1,
    limit: int = 12,
    category: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    seller: Optional[str] = None,
    featured: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Database = Depends(get_db),
):
    query = products_service.listing_query(db, category, search, min_price, max_price, seller, featured)
    products, meta = paginate(db.products, query, page, limit,
                              sort=products_service.sort_spec(sort_by, sort_order),
                              projection={"reviews": 0})
    products_service.with_sellers(db, products)
    return ok({"products": products, **meta})


@router.get("/search")
def search_products(
    q: Optional[str] = None,
    page: int = 1,
    limit: int = 12,
    category: Optional[str] = None,
    db: Database = Depends(get_db),
):
    if not q or not q.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search query is required")
    query = products_service.listing_query(db, category=category, search=q)
    products, meta = paginate(db.products, query, page, limit,
                              sort=[("ratings.average", DESCENDING), ("created_at", DESCENDING)],
                              projection={"reviews": 0})
    products_service.with_sellers(db, products)
    return ok({"products": products, "query": q, **meta})


@router.get("/categories")
def categories(db: Database = Depends(get_db)):
    return ok(products_service.category_stats(db))


@router.get("/featured")
def featured_products(limit: int = Query(8, ge=1, le=50), db: Database = Depends(get_db)):
    query = products_service.listing_query(db, featured=True)
    products = list(db.products.find(query, {"reviews": 0}).sort("created_at", DESCENDING).limit(limit))
    products_service.with_sellers(db, products)
    return ok(products)


@router.get("/seller/my-products")
def my_products(
    page: int = 1,
    limit: int = 12,
    status_filter: str = Query("all", alias="status", pattern="^(all|active|inactive|featured)$"),
    seller: Dict[str, Any] = Depends(approved("seller")),
    db: Database = Depends(get_db),
):
    query = {"seller": seller["_id"], **MY_PRODUCT_FILTERS.get(status_filter, {})}
    products, meta = paginate(db.products, query, page, limit)
    return ok({"products": products, **meta})


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    product = products_service.get_product(db, product_id)
    db.products.update_one({"_id": product["_id"]}, {"$inc": {"view_count": 1}})
    product["view_count"] = product.get("view_count", 0) + 1
    populate(db, product, "seller", "users",
             {"business_name": 1, "first_name": 1, "last_name": 1, "email": 1, "phone": 1,
              "address": 1, "ratings": 1, "store_slug": 1})
    populate(db, product, "user", "users", {"first_name": 1, "last_name": 1}, many_path="reviews")
    return ok(product)


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    seller: Dict[str, Any] = Depends(approved("seller")),
    db: Database = Depends(get_db),
):
    product = products_service.new_product(seller, payload.model_dump(exclude_none=True))
    product["_id"] = db.products.insert_one(product).inserted_id
    business_log.product_created(str(product["_id"]), str(seller["_id"]), product["name"])
    return ok(product, "Product created successfully")


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    seller: Dict[str, Any] = Depends(approved("seller")),
    db: Database = Depends(get_db),
):
    product = products_service.get_owned_product(db, product_id, seller)
    updates = payload.model_dump(exclude_none=True)

    if "images" in updates:
        updates["images"] = products_service.image_list(updates["images"])
    low = updates.get("min_order_quantity", product.get("min_order_quantity", 1))
    high = updates.get("max_order_quantity", product.get("max_order_quantity", 100))
    if high < low:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="max_order_quantity must be at least min_order_quantity")

    if updates:
        updates["updated_at"] = utcnow()
        db.products.update_one({"_id": product["_id"]}, {"$set": updates})
    updated = products_service.with_sellers(db, [db.products.find_one({"_id": product["_id"]})])[0]
    return ok(updated, "Product updated successfully")


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    seller: Dict[str, Any] = Depends(approved("seller")),
    db: Database = Depends(get_db),
):
    product = products_service.get_owned_product(db, product_id, seller)
    db.products.delete_one({"_id": product["_id"]})
    return ok(message="Product deleted successfully")


@router.post("/{product_id}/reviews", status_code=status.HTTP_201_CREATED)
def add_review(
    product_id: str,
    payload: ReviewCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    product = products_service.add_review(db, product_id, user, payload.rating, payload.comment)
    populate(db, product, "user", "users", {"first_name": 1, "last_name": 1}, many_path="reviews")
    return ok(product, "Review added successfully")
