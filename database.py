"""
Database Helper Functions

MongoDB connection and helpers shared by the API routers. Handlers receive the
database through the ``get_db`` dependency so tests can swap in an in-memory
client.
"""
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

# Load environment variables from .env file
load_dotenv()

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def utcnow() -> datetime:
    # naive UTC, matching what pymongo hands back on reads
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> ObjectId:
    """Insert a single document with timestamps and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    data_dict["created_at"] = utcnow()
    data_dict["updated_at"] = utcnow()

    result = database[collection_name].insert_one(data_dict)
    return result.inserted_id


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for ``value`` or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def object_id_or_404(value: Any, detail: str) -> ObjectId:
    oid = parse_object_id(value)
    if oid is None:
        raise HTTPException(status_code=404, detail=detail)
    return oid


def to_out(value: Any) -> Any:
    """Make a Mongo document JSON friendly: ``_id`` becomes ``id`` and ObjectIds become strings."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [to_out(v) for v in value]
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for key, item in value.items():
            if key == "_id":
                out["id"] = to_out(item)
            else:
                out[key] = to_out(item)
        return out
    return value


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("email", unique=True)
    database["user"].create_index("role")
    database["user"].create_index([("created_at", DESCENDING)])

    database["category"].create_index("slug", unique=True)
    database["category"].create_index("is_active")
    database["category"].create_index("sort_order")

    database["product"].create_index("slug", unique=True)
    database["product"].create_index("sku", unique=True)
    database["product"].create_index("category")
    database["product"].create_index("is_active")
    database["product"].create_index("is_featured")
    database["product"].create_index("price")
    database["product"].create_index([("average_rating", DESCENDING)])
    database["product"].create_index([("created_at", DESCENDING)])
    database["product"].create_index("tags")

    database["review"].create_index([("user", ASCENDING), ("product", ASCENDING)], unique=True)
    database["review"].create_index("product")
    database["review"].create_index("is_approved")
    database["review"].create_index([("rating", DESCENDING)])
    database["review"].create_index([("created_at", DESCENDING)])

    database["order"].create_index("user")
    database["order"].create_index("status")
    database["order"].create_index("payment_status")
    database["order"].create_index([("created_at", DESCENDING)])
