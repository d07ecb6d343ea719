# eastlink/api/reviews.py
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from pymongo.database import Database

from eastlink.api.deps import get_current_user
from eastlink.db.mongo import get_db
from eastlink.models.schemas import ReviewCreate
from eastlink.services import products_service
from eastlink.utils.pagination import paginate_list
from eastlink.utils.serializers import ok, populate

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.get("/{product_id}")
def product_reviews(product_id: str, page: int = 1, limit: int = 10, db: Database = Depends(get_db)):
    product = products_service.get_product(db, product_id)
    reviews = sorted(product.get("reviews", []), key=lambda r: r["created_at"], reverse=True)
    items, meta = paginate_list(reviews, page, limit)
    populate(db, items, "user", "users", products_service.REVIEWER)
    return ok({
        "reviews": items,
        "total_reviews": len(reviews),
        "average_rating": product.get("ratings", {}).get("average", 0),
        **meta,
    })


@router.post("/{product_id}", status_code=status.HTTP_201_CREATED)
def add_review(product_id: str, payload: ReviewCreate,
               user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    product = products_service.add_review(db, product_id, user, payload.rating, payload.comment)
    populate(db, product, "user", "users", products_service.REVIEWER, many_path="reviews")
    return ok(product, "Review added successfully")


@router.put("/{product_id}/{review_id}")
def update_review(product_id: str, review_id: str, payload: ReviewCreate,
                  user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    review = products_service.update_review(db, product_id, review_id, user, payload.rating, payload.comment)
    return ok(review, "Review updated successfully")


@router.delete("/{product_id}/{review_id}")
def delete_review(product_id: str, review_id: str,
                  user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    products_service.delete_review(db, product_id, review_id, user)
    return ok(message="Review deleted successfully")
