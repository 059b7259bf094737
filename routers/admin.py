import calendar
from datetime import datetime, timedelta
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from config import LOW_STOCK_THRESHOLD
from database import get_db, utcnow
from ordering import populate_orders
from responses import envelope
from security import require_admin

# All routes require admin authorization
router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

BY_DAY = {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}, "day": {"$dayOfMonth": "$created_at"}}
BY_MONTH = {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}}
SORT_BY_DAY = {"_id.year": 1, "_id.month": 1, "_id.day": 1}
SORT_BY_MONTH = {"_id.year": 1, "_id.month": 1}


def shift_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(period: str, now: datetime) -> datetime:
    if period == "week":
        return now - timedelta(days=7)
    if period == "year":
        return shift_months(now, -12)
    return shift_months(now, -1)


def aggregate(db: Database, collection: str, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return list(db[collection].aggregate(pipeline))


@router.get("/dashboard")
def dashboard(db: Database = Depends(get_db)):
    last_month = shift_months(utcnow(), -1)
    revenue = aggregate(db, "order", [
        {"$match": {"created_at": {"$gte": last_month}, "payment_status": "paid"}},
        {"$group": {"_id": None, "total": {"$sum": "$total"}}},
    ])
    return envelope({
        "total_orders": db["order"].count_documents({}),
        "total_products": db["product"].count_documents({}),
        "total_customers": db["user"].count_documents({"role": "customer"}),
        "total_reviews": db["review"].count_documents({}),
        "orders_this_month": db["order"].count_documents({"created_at": {"$gte": last_month}}),
        "revenue_this_month": round(revenue[0]["total"], 2) if revenue else 0,
        "pending_reviews": db["review"].count_documents({"is_approved": False}),
    })


@router.get("/recent-orders")
def recent_orders(db: Database = Depends(get_db)):
    orders = list(db["order"].find().sort("created_at", -1).limit(10))
    return envelope(populate_orders(db, orders))


@router.get("/popular-products")
def popular_products(db: Database = Depends(get_db)):
    products = list(db["product"].find({"is_active": True}).sort([("view_count", -1), ("average_rating", -1)]).limit(10))
    category_ids = list({p.get("category") for p in products if p.get("category")})
    names = {c["_id"]: c for c in db["category"].find({"_id": {"$in": category_ids}}, {"name": 1})} if category_ids else {}
    for p in products:
        p["category"] = names.get(p.get("category"), p.get("category"))
    return envelope(products)


@router.get("/sales-stats")
def sales_stats(period: str = Query("month", pattern="^(week|month|year)$"), db: Database = Depends(get_db)):
    start = period_start(period, utcnow())
    stats = aggregate(db, "order", [
        {"$match": {"created_at": {"$gte": start}, "payment_status": "paid"}},
        {"$group": {"_id": BY_DAY, "total_sales": {"$sum": "$total"}, "order_count": {"$sum": 1}}},
        {"$sort": SORT_BY_DAY},
    ])
    return envelope(stats)


@router.get("/customer-stats")
def customer_stats(db: Database = Depends(get_db)):
    now = utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    monthly = aggregate(db, "user", [
        {"$match": {"role": "customer"}},
        {"$group": {"_id": BY_MONTH, "count": {"$sum": 1}}},
        {"$sort": SORT_BY_MONTH},
    ])
    return envelope({
        "total_customers": db["user"].count_documents({"role": "customer"}),
        "verified_customers": db["user"].count_documents({"role": "customer", "is_email_verified": True}),
        "new_customers_this_month": db["user"].count_documents({"role": "customer", "created_at": {"$gte": month_start}}),
        "monthly_stats": monthly,
    })


@router.get("/product-stats")
def product_stats(db: Database = Depends(get_db)):
    by_category = aggregate(db, "product", [
        {"$lookup": {"from": "category", "localField": "category", "foreignField": "_id", "as": "category"}},
        {"$unwind": "$category"},
        {"$group": {"_id": "$category.name", "count": {"$sum": 1}, "avg_price": {"$avg": "$price"}}},
        {"$sort": {"_id": 1}},
    ])
    return envelope({
        "total_products": db["product"].count_documents({}),
        "active_products": db["product"].count_documents({"is_active": True}),
        "featured_products": db["product"].count_documents({"is_featured": True}),
        "low_stock_products": db["product"].count_documents({"stock": {"$lt": LOW_STOCK_THRESHOLD}}),
        "category_stats": by_category,
    })


@router.get("/order-stats")
def order_stats(db: Database = Depends(get_db)):
    by_status = aggregate(db, "order", [
        {"$group": {"_id": "$status", "count": {"$sum": 1}, "total_revenue": {"$sum": "$total"}}},
        {"$sort": {"_id": 1}},
    ])
    monthly = aggregate(db, "order", [
        {"$group": {"_id": BY_MONTH, "count": {"$sum": 1}, "revenue": {"$sum": "$total"}}},
        {"$sort": SORT_BY_MONTH},
    ])
    counts = {row["_id"]: row["count"] for row in by_status}
    return envelope({
        "total_orders": db["order"].count_documents({}),
        "pending_orders": counts.get("pending", 0),
        "processing_orders": counts.get("processing", 0),
        "shipped_orders": counts.get("shipped", 0),
        "delivered_orders": counts.get("delivered", 0),
        "order_status_stats": by_status,
        "monthly_orders": monthly,
    })


@router.get("/review-stats")
def review_stats(db: Database = Depends(get_db)):
    ratings = aggregate(db, "review", [
        {"$group": {"_id": "$rating", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ])
    monthly = aggregate(db, "review", [
        {"$group": {"_id": BY_MONTH, "count": {"$sum": 1}, "avg_rating": {"$avg": "$rating"}}},
        {"$sort": SORT_BY_MONTH},
    ])
    return envelope({
        "total_reviews": db["review"].count_documents({}),
        "approved_reviews": db["review"].count_documents({"is_approved": True}),
        "pending_reviews": db["review"].count_documents({"is_approved": False}),
        "rating_stats": ratings,
        "monthly_reviews": monthly,
    })
