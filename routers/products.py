import logging
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import images
from database import create_document, get_db, object_id_or_404, parse_object_id, utcnow
from responses import envelope, paginate, sort_direction
from schemas import Dimensions, Product, ProductSpecification, ProductVariant
from security import require_admin

logger = logging.getLogger("storefront.products")

router = APIRouter(prefix="/api/products", tags=["products"])

CATEGORY_FIELDS = {"name": 1, "slug": 1}
REVIEWER_FIELDS = {"first_name": 1, "last_name": 1}


class ProductDTO(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: str
    images: List[str] = []
    main_image: Optional[str] = None
    variants: List[ProductVariant] = []
    specifications: List[ProductSpecification] = []
    tags: List[str] = []
    is_featured: bool = False
    stock: int = Field(..., ge=0)
    sku: str = Field(..., min_length=1)
    brand: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None
    meta_title: Optional[str] = Field(None, max_length=60)
    meta_description: Optional[str] = Field(None, max_length=160)


class ProductUpdateDTO(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    images: Optional[List[str]] = None
    main_image: Optional[str] = None
    variants: Optional[List[ProductVariant]] = None
    specifications: Optional[List[ProductSpecification]] = None
    tags: Optional[List[str]] = None
    is_featured: Optional[bool] = None
    is_active: Optional[bool] = None
    stock: Optional[int] = Field(None, ge=0)
    sku: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None
    meta_title: Optional[str] = Field(None, max_length=60)
    meta_description: Optional[str] = Field(None, max_length=160)


def slugify(name: str) -> str:
    return re.sub(r"(^-|-$)", "", re.sub(r"[^a-z0-9]+", "-", name.lower()))


def text_search_clause(term: str) -> List[Dict[str, Any]]:
    pattern = re.escape(term)
    return [{field: {"$regex": pattern, "$options": "i"}} for field in ("name", "description", "tags")]


def with_computed(product: Dict[str, Any]) -> Dict[str, Any]:
    price = product.get("price") or 0
    original = product.get("original_price")
    product["discount_percentage"] = int((original - price) / original * 100 + 0.5) if original and original > price else 0
    product["in_stock"] = product.get("stock", 0) > 0
    return product


def populate_categories(db: Database, products: List[Dict[str, Any]], fields: Optional[Dict[str, int]] = None) -> List[Dict[str, Any]]:
    ids = {p.get("category") for p in products if p.get("category")}
    categories = {c["_id"]: c for c in db["category"].find({"_id": {"$in": list(ids)}}, fields or CATEGORY_FIELDS)} if ids else {}
    for p in products:
        p["category"] = categories.get(p.get("category"), p.get("category"))
        with_computed(p)
    return products


def resolve_category(db: Database, value: str) -> ObjectId:
    category_id = parse_object_id(value)
    if category_id is None or not db["category"].find_one({"_id": category_id}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Valid category ID is required")
    return category_id


@router.get("")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    category: Optional[str] = None,
    minPrice: Optional[float] = Query(None, ge=0),
    maxPrice: Optional[float] = Query(None, ge=0),
    rating: Optional[float] = Query(None, ge=0, le=5),
    search: Optional[str] = None,
    is_active: bool = True,
    sort: str = "created_at",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Database = Depends(get_db),
):
    query: Dict[str, Any] = {"is_active": is_active}
    if category:
        category_id = parse_object_id(category)
        if category_id is None:
            found = db["category"].find_one({"slug": category}, {"_id": 1})
            category_id = found["_id"] if found else None
        query["category"] = category_id
    if minPrice is not None or maxPrice is not None:
        query["price"] = {}
        if minPrice is not None:
            query["price"]["$gte"] = minPrice
        if maxPrice is not None:
            query["price"]["$lte"] = maxPrice
    if rating is not None:
        query["average_rating"] = {"$gte": rating}
    if search:
        query["$or"] = text_search_clause(search)

    total = db["product"].count_documents(query)
    cursor = db["product"].find(query).sort(sort, sort_direction(order)).skip((page - 1) * limit).limit(limit)
    products = populate_categories(db, list(cursor))
    return envelope(products, pagination=paginate(page, limit, total))


@router.get("/featured")
def featured_products(db: Database = Depends(get_db)):
    products = list(db["product"].find({"is_featured": True, "is_active": True}).limit(8))
    return envelope(populate_categories(db, products))


@router.get("/popular")
def popular_products(db: Database = Depends(get_db)):
    cursor = db["product"].find({"is_active": True}).sort([("average_rating", -1), ("review_count", -1)]).limit(8)
    return envelope(populate_categories(db, list(cursor)))


@router.get("/search")
def search_products(q: Optional[str] = None, limit: int = Query(10, ge=1, le=50), db: Database = Depends(get_db)):
    if not q:
        raise HTTPException(status_code=400, detail="Search query is required")
    query = {"is_active": True, "$or": text_search_clause(q)}
    return envelope(populate_categories(db, list(db["product"].find(query).limit(limit))))


@router.post("/upload-images")
def upload_product_images(files: List[UploadFile] = File(default=[]), admin: Dict[str, Any] = Depends(require_admin)):
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    stored: List[Dict[str, str]] = []
    try:
        for upload in files:
            stored.append(images.save_image(upload, "products"))
    except Exception:
        for item in stored:
            images.delete_image(item["public_id"])
        raise
    return envelope(stored)


@router.delete("/images/{public_id:path}")
def delete_product_image(public_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    if not images.delete_image(public_id):
        raise HTTPException(status_code=404, detail="Image not found")
    return envelope(message="Image deleted successfully")


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    oid = object_id_or_404(product_id, "Product not found")
    product = db["product"].find_one_and_update({"_id": oid}, {"$inc": {"view_count": 1}},
                                               return_document=ReturnDocument.AFTER)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    populate_categories(db, [product])
    reviews = list(db["review"].find({"product": oid, "is_approved": True}).sort("created_at", -1))
    reviewer_ids = list({r["user"] for r in reviews})
    reviewers = {u["_id"]: u for u in db["user"].find({"_id": {"$in": reviewer_ids}}, REVIEWER_FIELDS)} if reviewer_ids else {}
    for r in reviews:
        r["user"] = reviewers.get(r["user"], r["user"])
    product["reviews"] = reviews
    return envelope(product)


@router.get("/{product_id}/related")
def related_products(product_id: str, db: Database = Depends(get_db)):
    oid = object_id_or_404(product_id, "Product not found")
    product = db["product"].find_one({"_id": oid}, {"category": 1})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    cursor = db["product"].find({"_id": {"$ne": oid}, "category": product.get("category"), "is_active": True}).limit(4)
    return envelope(populate_categories(db, list(cursor)))


@router.post("", status_code=201)
def create_product(data: ProductDTO, admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    if db["product"].find_one({"sku": data.sku}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="SKU already exists")
    slug = slugify(data.name)
    if not slug:
        raise HTTPException(status_code=400, detail="Product name must contain letters or digits")
    if db["product"].find_one({"slug": slug}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Product slug already exists")

    category_id = resolve_category(db, data.category)
    fields = data.model_dump(exclude={"category"})
    if not fields.get("main_image") and fields.get("images"):
        fields["main_image"] = fields["images"][0]
    product = Product(**fields, category=category_id, slug=slug)
    try:
        product_id = create_document(db, "product", product)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="SKU or slug already exists")

    db["category"].update_one({"_id": category_id}, {"$inc": {"product_count": 1}})
    logger.info("Product %s (%s) created by %s", product_id, data.sku, admin["_id"])
    return envelope(with_computed(db["product"].find_one({"_id": product_id})))


@router.put("/{product_id}")
def update_product(product_id: str, data: ProductUpdateDTO, admin: Dict[str, Any] = Depends(require_admin),
                   db: Database = Depends(get_db)):
    oid = object_id_or_404(product_id, "Product not found")
    product = db["product"].find_one({"_id": oid})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    changes = data.model_dump(exclude_unset=True)
    if "sku" in changes and db["product"].find_one({"sku": changes["sku"], "_id": {"$ne": oid}}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="SKU already exists")
    if "category" in changes:
        changes["category"] = resolve_category(db, changes["category"])

    try:
        updated = db["product"].find_one_and_update({"_id": oid}, {"$set": {**changes, "updated_at": utcnow()}},
                                                    return_document=ReturnDocument.AFTER)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="SKU already exists")

    old_category = product.get("category")
    new_category = changes.get("category", old_category)
    if new_category != old_category:
        db["category"].update_one({"_id": old_category}, {"$inc": {"product_count": -1}})
        db["category"].update_one({"_id": new_category}, {"$inc": {"product_count": 1}})
    return envelope(with_computed(updated))


@router.delete("/{product_id}")
def delete_product(product_id: str, admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    oid = object_id_or_404(product_id, "Product not found")
    product = db["product"].find_one_and_delete({"_id": oid})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    db["category"].update_one({"_id": product.get("category"), "product_count": {"$gt": 0}},
                              {"$inc": {"product_count": -1}})
    logger.info("Product %s deleted by %s", oid, admin["_id"])
    return envelope(message="Product deleted successfully")
