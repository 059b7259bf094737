import logging
import math
from typing import Dict

from bson import ObjectId
from pymongo.database import Database

logger = logging.getLogger("storefront.reviews")


def round_rating(value: float) -> float:
    # half-up to one decimal: 4.25 -> 4.3
    return math.floor(value * 10 + 0.5) / 10


def recompute_product_rating(db: Database, product_id: ObjectId) -> Dict[str, float]:
    """Rebuild average_rating and review_count from the approved reviews of a product."""
    rows = list(db["review"].aggregate([
        {"$match": {"product": product_id, "is_approved": True}},
        {"$group": {"_id": "$product", "avg": {"$avg": "$rating"}, "count": {"$sum": 1}}},
    ]))
    if rows:
        stats = {"average_rating": round_rating(rows[0]["avg"]), "review_count": rows[0]["count"]}
    else:
        stats = {"average_rating": 0, "review_count": 0}

    db["product"].update_one({"_id": product_id}, {"$set": stats})
    logger.info("Product %s rating -> %s (%d approved)", product_id, stats["average_rating"], stats["review_count"])
    return stats
