import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_db, object_id_or_404, utcnow
from ordering import RESTOCK_STATUSES, place_order, populate_order, populate_orders, restock_order
from responses import envelope, paginate, sort_direction
from schemas import ORDER_STATUSES, PAYMENT_STATUSES, ShippingAddress
from security import get_current_user, require_admin

logger = logging.getLogger("storefront.orders")

router = APIRouter(prefix="/api/orders", tags=["orders"])

STATUS_PATTERN = "^(" + "|".join(ORDER_STATUSES) + ")$"
PAYMENT_STATUS_PATTERN = "^(" + "|".join(PAYMENT_STATUSES) + ")$"


class OrderItemDTO(BaseModel):
    product: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    variant: Optional[str] = None


class CreateOrderDTO(BaseModel):
    items: List[OrderItemDTO] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: str = Field(..., min_length=1)
    notes: Optional[str] = None


class OrderStatusDTO(BaseModel):
    status: str = Field(..., pattern=STATUS_PATTERN)
    tracking_number: Optional[str] = Field(None, min_length=1)
    payment_status: Optional[str] = Field(None, pattern=PAYMENT_STATUS_PATTERN)


@router.post("", status_code=201)
def create_order(data: CreateOrderDTO, user: Dict[str, Any] = Depends(get_current_user),
                 db: Database = Depends(get_db)):
    order_id = place_order(db, user["_id"], data.items, data.shipping_address, data.payment_method, data.notes)
    return envelope(populate_order(db, db["order"].find_one({"_id": order_id})))


@router.get("/my-orders")
def my_orders(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), status: Optional[str] = None,
              user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    query: Dict[str, Any] = {"user": user["_id"]}
    if status:
        query["status"] = status
    total = db["order"].count_documents(query)
    cursor = db["order"].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    orders = populate_orders(db, list(cursor), with_user=False)
    return envelope(orders, pagination=paginate(page, limit, total))


@router.get("")
def list_orders(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100), status: Optional[str] = None,
                paymentStatus: Optional[str] = None, sort: str = "created_at",
                order: str = Query("desc", pattern="^(asc|desc)$"),
                admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if paymentStatus:
        query["payment_status"] = paymentStatus
    total = db["order"].count_documents(query)
    cursor = db["order"].find(query).sort(sort, sort_direction(order)).skip((page - 1) * limit).limit(limit)
    return envelope(populate_orders(db, list(cursor)), pagination=paginate(page, limit, total))


@router.get("/{order_id}")
def get_order(order_id: str, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    oid = object_id_or_404(order_id, "Order not found")
    order = db["order"].find_one({"_id": oid})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if user.get("role") != "admin" and order.get("user") != user["_id"]:
        raise HTTPException(status_code=403, detail="Not authorized to view this order")
    return envelope(populate_order(db, order))


@router.put("/{order_id}/status")
def update_order_status(order_id: str, data: OrderStatusDTO, admin: Dict[str, Any] = Depends(require_admin),
                        db: Database = Depends(get_db)):
    oid = object_id_or_404(order_id, "Order not found")
    order = db["order"].find_one({"_id": oid})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    if order["status"] in RESTOCK_STATUSES and data.status not in RESTOCK_STATUSES:
        raise HTTPException(status_code=400, detail=f"Cannot change status of a {order['status']} order")

    update: Dict[str, Any] = {"status": data.status, "updated_at": utcnow()}
    if data.tracking_number:
        update["tracking_number"] = data.tracking_number
    if data.payment_status:
        update["payment_status"] = data.payment_status
    if data.status == "shipped":
        update["shipped_at"] = utcnow()
    elif data.status == "delivered":
        update["delivered_at"] = utcnow()

    # Stock goes back once, on the first move into cancelled or refunded
    updated = db["order"].find_one_and_update(
        {"_id": oid, "status": order["status"]}, {"$set": update}, return_document=ReturnDocument.AFTER)
    if not updated:
        raise HTTPException(status_code=409, detail="Order was modified concurrently, please retry")
    if data.status in RESTOCK_STATUSES and order["status"] not in RESTOCK_STATUSES:
        restock_order(db, order)

    logger.info("Order %s status %s -> %s by %s", oid, order["status"], data.status, admin["_id"])
    return envelope(populate_order(db, updated))
