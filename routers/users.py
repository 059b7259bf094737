import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from pymongo.database import Database

from addresses import find_address, normalize_defaults
from database import get_db, object_id_or_404, parse_object_id, utcnow
from responses import envelope, paginate
from routers.auth import ProfileDTO, update_profile
from schemas import ADDRESS_TYPES, Address
from security import PRIVATE_USER_FIELDS, get_current_user, public_user, require_admin

router = APIRouter(prefix="/api/users", tags=["users"])

WISHLIST_FIELDS = {"name": 1, "main_image": 1, "price": 1, "average_rating": 1}
ADDRESS_TYPE_PATTERN = "^(" + "|".join(ADDRESS_TYPES) + ")$"


class AddressDTO(BaseModel):
    type: str = Field(..., pattern=ADDRESS_TYPE_PATTERN)
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: Optional[str] = Field(None, min_length=1)
    is_default: bool = False


class PreferencesDTO(BaseModel):
    favorite_categories: Optional[List[str]] = None
    newsletter_subscription: Optional[bool] = None


def save_addresses(db: Database, user_id: ObjectId, addresses: List[Dict[str, Any]]) -> Dict[str, Any]:
    db["user"].update_one({"_id": user_id}, {"$set": {"addresses": addresses, "updated_at": utcnow()}})
    return public_user(db["user"].find_one({"_id": user_id}))


def address_document(data: AddressDTO, address_id: ObjectId) -> Dict[str, Any]:
    fields = data.model_dump(exclude_none=True)
    return {"_id": address_id, **Address(**fields).model_dump()}


def load_wishlist(db: Database, user_id: ObjectId) -> List[Dict[str, Any]]:
    user = db["user"].find_one({"_id": user_id}, {"wishlist": 1})
    ids = user.get("wishlist") or []
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": ids}}, WISHLIST_FIELDS)} if ids else {}
    return [products[i] for i in ids if i in products]


@router.get("")
def list_users(role: Optional[str] = None, search: Optional[str] = None, page: int = Query(1, ge=1),
               limit: int = Query(10, ge=1, le=100), admin: Dict[str, Any] = Depends(require_admin),
               db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    if role:
        query["role"] = role
    if search:
        pattern = re.escape(search)
        query["$or"] = [{field: {"$regex": pattern, "$options": "i"}} for field in ("first_name", "last_name", "email")]

    total = db["user"].count_documents(query)
    hidden = {field: 0 for field in PRIVATE_USER_FIELDS}
    cursor = db["user"].find(query, hidden).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    return envelope(list(cursor), pagination=paginate(page, limit, total))


@router.put("/profile")
def update_my_profile(data: ProfileDTO, user: Dict[str, Any] = Depends(get_current_user),
                      db: Database = Depends(get_db)):
    return envelope(update_profile(db, user, data))


@router.post("/addresses")
def add_address(data: AddressDTO, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    address = address_document(data, ObjectId())
    addresses = list(user.get("addresses") or []) + [address]
    normalize_defaults(addresses, preferred=address["_id"])
    return envelope(save_addresses(db, user["_id"], addresses))


@router.put("/addresses/{address_id}")
def update_address(address_id: str, data: AddressDTO, user: Dict[str, Any] = Depends(get_current_user),
                   db: Database = Depends(get_db)):
    oid = object_id_or_404(address_id, "Address not found")
    addresses = list(user.get("addresses") or [])
    if find_address(addresses, oid) is None:
        raise HTTPException(status_code=404, detail="Address not found")

    addresses = [address_document(data, oid) if a.get("_id") == oid else a for a in addresses]
    normalize_defaults(addresses, preferred=oid)
    return envelope(save_addresses(db, user["_id"], addresses))


@router.delete("/addresses/{address_id}")
def delete_address(address_id: str, user: Dict[str, Any] = Depends(get_current_user),
                   db: Database = Depends(get_db)):
    oid = object_id_or_404(address_id, "Address not found")
    addresses = list(user.get("addresses") or [])
    if find_address(addresses, oid) is None:
        raise HTTPException(status_code=404, detail="Address not found")

    addresses = normalize_defaults([a for a in addresses if a.get("_id") != oid])
    return envelope(save_addresses(db, user["_id"], addresses))


@router.put("/addresses/{address_id}/default")
def set_default_address(address_id: str, user: Dict[str, Any] = Depends(get_current_user),
                        db: Database = Depends(get_db)):
    oid = object_id_or_404(address_id, "Address not found")
    addresses = list(user.get("addresses") or [])
    address = find_address(addresses, oid)
    if address is None:
        raise HTTPException(status_code=404, detail="Address not found")

    address["is_default"] = True
    normalize_defaults(addresses, preferred=oid)
    return envelope(save_addresses(db, user["_id"], addresses))


@router.put("/preferences")
def update_preferences(data: PreferencesDTO, user: Dict[str, Any] = Depends(get_current_user),
                       db: Database = Depends(get_db)):
    changes: Dict[str, Any] = {}
    if data.favorite_categories is not None:
        category_ids = [parse_object_id(c) for c in data.favorite_categories]
        if any(c is None for c in category_ids):
            raise HTTPException(status_code=400, detail="Valid category ID is required")
        changes["preferences.favorite_categories"] = category_ids
    if data.newsletter_subscription is not None:
        changes["preferences.newsletter_subscription"] = data.newsletter_subscription

    if changes:
        db["user"].update_one({"_id": user["_id"]}, {"$set": {**changes, "updated_at": utcnow()}})
    return envelope(public_user(db["user"].find_one({"_id": user["_id"]})))


@router.get("/wishlist")
def get_wishlist(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    return envelope(load_wishlist(db, user["_id"]))


@router.post("/wishlist/{product_id}")
def add_to_wishlist(product_id: str, user: Dict[str, Any] = Depends(get_current_user),
                    db: Database = Depends(get_db)):
    oid = object_id_or_404(product_id, "Product not found")
    if not db["product"].find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Product not found")
    if oid in (user.get("wishlist") or []):
        raise HTTPException(status_code=400, detail="Product already in wishlist")

    db["user"].update_one({"_id": user["_id"]}, {"$addToSet": {"wishlist": oid}})
    return envelope(load_wishlist(db, user["_id"]))


@router.delete("/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, user: Dict[str, Any] = Depends(get_current_user),
                         db: Database = Depends(get_db)):
    oid = parse_object_id(product_id)
    if oid is None or oid not in (user.get("wishlist") or []):
        raise HTTPException(status_code=404, detail="Product not found in wishlist")

    db["user"].update_one({"_id": user["_id"]}, {"$pull": {"wishlist": oid}})
    return envelope(load_wishlist(db, user["_id"]))
