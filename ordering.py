"""
Order placement.

Stock is reserved one line item at a time with a conditional update, so the
"enough stock?" check and the decrement are a single atomic document
operation. If any later step fails, every reservation made so far is handed
back before the error propagates.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from fastapi import HTTPException
from pymongo.database import Database

from config import FREE_SHIPPING_THRESHOLD, SHIPPING_FLAT, TAX_RATE
from database import create_document, parse_object_id
from schemas import Order, OrderItem, ShippingAddress

logger = logging.getLogger("storefront.orders")

USER_FIELDS = {"first_name": 1, "last_name": 1, "email": 1}
ITEM_PRODUCT_FIELDS = {"name": 1, "main_image": 1, "price": 1}
RESTOCK_STATUSES = ("cancelled", "refunded")


def calc_shipping(subtotal: float) -> float:
    if subtotal > FREE_SHIPPING_THRESHOLD:
        return 0.0
    return SHIPPING_FLAT


def calc_totals(subtotal: float) -> Dict[str, float]:
    subtotal = round(subtotal, 2)
    tax = round(subtotal * TAX_RATE, 2)
    shipping = calc_shipping(subtotal)
    total = round(subtotal + tax + shipping, 2)
    return {"subtotal": subtotal, "tax": tax, "shipping": shipping, "total": total}


def reserve_stock(db: Database, product_id: ObjectId, quantity: int) -> bool:
    result = db["product"].update_one(
        {"_id": product_id, "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity}},
    )
    return result.modified_count == 1


def release_stock(db: Database, reservations: Iterable[Tuple[ObjectId, int]]) -> None:
    for product_id, quantity in reservations:
        db["product"].update_one({"_id": product_id}, {"$inc": {"stock": quantity}})


def place_order(db: Database, user_id: ObjectId, items: List[Any], shipping_address: ShippingAddress,
                payment_method: str, notes: Optional[str] = None) -> ObjectId:
    """Reserve stock for every line, price the cart and persist the order.

    ``items`` are objects with ``product``, ``quantity`` and ``variant``
    attributes. Raises HTTPException(400) for unknown products or short
    stock; no stock stays reserved when an exception escapes.
    """
    reservations: List[Tuple[ObjectId, int]] = []
    order_items: List[OrderItem] = []
    try:
        for item in items:
            product_id = parse_object_id(item.product)
            product = db["product"].find_one({"_id": product_id}) if product_id else None
            if not product:
                raise HTTPException(status_code=400, detail=f"Product {item.product} not found")

            if not reserve_stock(db, product_id, item.quantity):
                raise HTTPException(status_code=400, detail=f"Insufficient stock for {product['name']}")
            reservations.append((product_id, item.quantity))

            order_items.append(OrderItem(
                product=product_id,
                name=product["name"],
                price=float(product["price"]),
                quantity=item.quantity,
                variant=item.variant,
                image=product.get("main_image"),
                sku=product["sku"],
            ))

        totals = calc_totals(sum(i.price * i.quantity for i in order_items))
        order = Order(
            user=user_id,
            items=order_items,
            payment_method=payment_method,
            shipping_address=shipping_address,
            notes=notes,
            **totals,
        )
        order_id = create_document(db, "order", order)
    except Exception:
        if reservations:
            logger.warning("Releasing %d stock reservation(s) after failed order", len(reservations))
            release_stock(db, reservations)
        raise

    logger.info("Order %s placed by %s: %d item(s), total %.2f", order_id, user_id, len(order_items), totals["total"])
    return order_id


def restock_order(db: Database, order: Dict[str, Any]) -> None:
    release_stock(db, ((i["product"], i["quantity"]) for i in order.get("items", [])))


def populate_orders(db: Database, orders: List[Dict[str, Any]], with_user: bool = True) -> List[Dict[str, Any]]:
    """Join the customer and the current product fields into order documents."""
    user_ids = {o.get("user") for o in orders if o.get("user")}
    product_ids = {i.get("product") for o in orders for i in o.get("items", []) if i.get("product")}

    users = {}
    if with_user and user_ids:
        users = {u["_id"]: u for u in db["user"].find({"_id": {"$in": list(user_ids)}}, USER_FIELDS)}
    products = {}
    if product_ids:
        products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": list(product_ids)}}, ITEM_PRODUCT_FIELDS)}

    for order in orders:
        if with_user:
            order["user"] = users.get(order.get("user"), order.get("user"))
        for item in order.get("items", []):
            item["product"] = products.get(item.get("product"), item.get("product"))
    return orders


def populate_order(db: Database, order: Dict[str, Any]) -> Dict[str, Any]:
    return populate_orders(db, [order])[0]
