from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, object_id_or_404, utcnow
from responses import envelope
from schemas import Category
from security import require_admin

router = APIRouter(prefix="/api/categories", tags=["categories"])


class CategoryDTO(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    image: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    sort_order: int = 0


class CategoryUpdateDTO(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    image: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


@router.get("")
def list_categories(db: Database = Depends(get_db)):
    cursor = db["category"].find({"is_active": True}).sort([("sort_order", 1), ("name", 1)])
    return envelope(list(cursor))


@router.get("/{category_id}")
def get_category(category_id: str, db: Database = Depends(get_db)):
    oid = object_id_or_404(category_id, "Category not found")
    category = db["category"].find_one({"_id": oid})
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return envelope(category)


@router.post("", status_code=201)
def create_category(data: CategoryDTO, admin: Dict[str, Any] = Depends(require_admin),
                    db: Database = Depends(get_db)):
    slug = data.slug.strip().lower()
    if db["category"].find_one({"slug": slug}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Category slug already exists")

    category = Category(**data.model_dump(exclude={"slug"}), slug=slug)
    try:
        category_id = create_document(db, "category", category)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Category slug already exists")
    return envelope(db["category"].find_one({"_id": category_id}))


@router.put("/{category_id}")
def update_category(category_id: str, data: CategoryUpdateDTO, admin: Dict[str, Any] = Depends(require_admin),
                    db: Database = Depends(get_db)):
    oid = object_id_or_404(category_id, "Category not found")
    changes = data.model_dump(exclude_unset=True)
    if changes.get("slug"):
        changes["slug"] = changes["slug"].strip().lower()
        if db["category"].find_one({"slug": changes["slug"], "_id": {"$ne": oid}}, {"_id": 1}):
            raise HTTPException(status_code=400, detail="Category slug already exists")

    category = db["category"].find_one_and_update({"_id": oid}, {"$set": {**changes, "updated_at": utcnow()}},
                                                  return_document=ReturnDocument.AFTER)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return envelope(category)


@router.delete("/{category_id}")
def delete_category(category_id: str, admin: Dict[str, Any] = Depends(require_admin),
                    db: Database = Depends(get_db)):
    oid = object_id_or_404(category_id, "Category not found")
    if not db["category"].find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Category not found")

    product_count = db["product"].count_documents({"category": oid})
    if product_count > 0:
        raise HTTPException(status_code=400, detail=f"Cannot delete category with {product_count} products")

    db["category"].delete_one({"_id": oid})
    return envelope(message="Category deleted successfully")
