from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, object_id_or_404, parse_object_id, utcnow
from ratings import recompute_product_rating
from responses import envelope, paginate
from schemas import Review
from security import get_current_user, require_admin

router = APIRouter(prefix="/api/reviews", tags=["reviews"])

REVIEWER_FIELDS = {"first_name": 1, "last_name": 1}
PRODUCT_FIELDS = {"name": 1, "main_image": 1}


class ReviewDTO(BaseModel):
    product: str
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    comment: str = Field(..., min_length=10, max_length=1000)


class ReviewUpdateDTO(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    comment: Optional[str] = Field(None, min_length=10, max_length=1000)


def populate(db: Database, reviews: List[Dict[str, Any]], field: str, collection: str,
             projection: Dict[str, int]) -> List[Dict[str, Any]]:
    ids = list({r[field] for r in reviews if r.get(field)})
    found = {d["_id"]: d for d in db[collection].find({"_id": {"$in": ids}}, projection)} if ids else {}
    for r in reviews:
        r[field] = found.get(r.get(field), r.get(field))
    return reviews


def get_review_or_404(db: Database, review_id: str) -> Dict[str, Any]:
    oid = object_id_or_404(review_id, "Review not found")
    review = db["review"].find_one({"_id": oid})
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    return review


@router.get("/product/{product_id}")
def product_reviews(product_id: str, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                    rating: Optional[int] = Query(None, ge=1, le=5), db: Database = Depends(get_db)):
    query: Dict[str, Any] = {"product": parse_object_id(product_id), "is_approved": True}
    if rating:
        query["rating"] = rating
    total = db["review"].count_documents(query)
    cursor = db["review"].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    reviews = populate(db, list(cursor), "user", "user", REVIEWER_FIELDS)
    return envelope(reviews, pagination=paginate(page, limit, total))


@router.get("")
def list_reviews(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                 is_approved: Optional[bool] = None, admin: Dict[str, Any] = Depends(require_admin),
                 db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    if is_approved is not None:
        query["is_approved"] = is_approved
    total = db["review"].count_documents(query)
    reviews = list(db["review"].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit))
    populate(db, reviews, "user", "user", {"first_name": 1, "last_name": 1, "email": 1})
    populate(db, reviews, "product", "product", PRODUCT_FIELDS)
    return envelope(reviews, pagination=paginate(page, limit, total))


@router.get("/my-reviews")
def my_reviews(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
               user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    query = {"user": user["_id"]}
    total = db["review"].count_documents(query)
    cursor = db["review"].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    reviews = populate(db, list(cursor), "product", "product", PRODUCT_FIELDS)
    return envelope(reviews, pagination=paginate(page, limit, total))


@router.post("", status_code=201)
def create_review(data: ReviewDTO, user: Dict[str, Any] = Depends(get_current_user),
                  db: Database = Depends(get_db)):
    product_id = parse_object_id(data.product)
    if product_id is None:
        raise HTTPException(status_code=400, detail="Valid product ID is required")
    if db["review"].find_one({"user": user["_id"], "product": product_id}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="You have already reviewed this product")
    if not db["product"].find_one({"_id": product_id}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Product not found")

    review = Review(user=user["_id"], product=product_id, rating=data.rating, title=data.title,
                    comment=data.comment.strip())
    try:
        review_id = create_document(db, "review", review)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="You have already reviewed this product")

    created = populate(db, [db["review"].find_one({"_id": review_id})], "user", "user", REVIEWER_FIELDS)[0]
    return envelope(created, message="Review submitted successfully and pending approval")


@router.put("/{review_id}")
def update_review(review_id: str, data: ReviewUpdateDTO, user: Dict[str, Any] = Depends(get_current_user),
                  db: Database = Depends(get_db)):
    review = get_review_or_404(db, review_id)
    if review.get("user") != user["_id"]:
        raise HTTPException(status_code=403, detail="Not authorized to update this review")

    changes = data.model_dump(exclude_unset=True)
    updated = db["review"].find_one_and_update({"_id": review["_id"]}, {"$set": {**changes, "updated_at": utcnow()}},
                                               return_document=ReturnDocument.AFTER)
    if updated.get("is_approved") and "rating" in changes:
        recompute_product_rating(db, updated["product"])
    return envelope(populate(db, [updated], "user", "user", REVIEWER_FIELDS)[0])


@router.delete("/{review_id}")
def delete_review(review_id: str, user: Dict[str, Any] = Depends(get_current_user),
                  db: Database = Depends(get_db)):
    review = get_review_or_404(db, review_id)
    if review.get("user") != user["_id"] and user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Not authorized to delete this review")

    db["review"].delete_one({"_id": review["_id"]})
    recompute_product_rating(db, review["product"])
    return envelope(message="Review deleted successfully")


@router.put("/{review_id}/approve")
def approve_review(review_id: str, admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    review = get_review_or_404(db, review_id)
    approved = db["review"].find_one_and_update({"_id": review["_id"]},
                                                {"$set": {"is_approved": True, "updated_at": utcnow()}},
                                                return_document=ReturnDocument.AFTER)
    recompute_product_rating(db, approved["product"])
    return envelope(populate(db, [approved], "user", "user", REVIEWER_FIELDS)[0],
                    message="Review approved successfully")
