"""Demo data for local development."""
import logging
from typing import Dict

from bson import ObjectId
from pymongo.database import Database

from database import create_document
from schemas import Category, Product, User
from security import hash_password

logger = logging.getLogger("storefront.seed")

CATEGORIES = [
    ("Electronics", "Latest electronic devices and gadgets", "photo-1498049794561-7780e7231661"),
    ("Clothing", "Fashion and apparel for all ages", "photo-1441986300917-64674bd600d8"),
    ("Home and Garden", "Everything for your home and garden", "photo-1586023492125-27b2c045efd7"),
    ("Sports", "Sports equipment and athletic wear", "photo-1571019613454-1cb2f99b2d8b"),
    ("Books", "Books, magazines, and educational materials", "photo-1481627834876-b7833e8f5570"),
]

PRODUCTS = [
    {
        "name": "Wireless Bluetooth Headphones",
        "description": "High-quality wireless headphones with noise cancellation and long battery life.",
        "price": 99.99,
        "original_price": 129.99,
        "category": "electronics",
        "images": ["https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=400"],
        "variants": [
            {"color": "Black", "stock": 50, "price": 99.99, "sku": "WH-BLACK-001"},
            {"color": "White", "stock": 30, "price": 99.99, "sku": "WH-WHITE-001"},
        ],
        "specifications": [{"name": "Battery Life", "value": "20 hours"}, {"name": "Connectivity", "value": "Bluetooth 5.0"}],
        "tags": ["wireless", "bluetooth", "headphones"],
        "is_featured": True,
        "stock": 80,
        "sku": "WH-001",
        "brand": "AudioTech",
        "slug": "wireless-bluetooth-headphones",
    },
    {
        "name": "Organic Cotton T-Shirt",
        "description": "Comfortable and sustainable organic cotton t-shirt available in multiple colors.",
        "price": 24.99,
        "category": "clothing",
        "images": ["https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?w=400"],
        "variants": [
            {"size": "S", "color": "White", "stock": 100, "price": 24.99, "sku": "TS-WHITE-S"},
            {"size": "M", "color": "White", "stock": 150, "price": 24.99, "sku": "TS-WHITE-M"},
        ],
        "tags": ["organic", "cotton", "t-shirt"],
        "is_featured": True,
        "stock": 250,
        "sku": "TS-001",
        "brand": "EcoWear",
        "slug": "organic-cotton-t-shirt",
    },
    {
        "name": "Smart LED Desk Lamp",
        "description": "Modern LED desk lamp with touch controls and adjustable brightness.",
        "price": 79.99,
        "category": "home-and-garden",
        "images": ["https://images.unsplash.com/photo-1507473885765-e6ed057f782c?w=400"],
        "tags": ["led", "desk-lamp", "smart"],
        "stock": 45,
        "sku": "LAMP-001",
        "slug": "smart-led-desk-lamp",
    },
]


def seed_database(db: Database) -> Dict[str, int]:
    """Insert demo users, categories and products into empty collections."""
    created = {"users": 0, "categories": 0, "products": 0}

    if not db["user"].find_one({"email": "admin@demo.com"}):
        create_document(db, "user", User(first_name="Admin", last_name="User", email="admin@demo.com",
                                         password_hash=hash_password("admin123"), role="admin",
                                         is_email_verified=True))
        created["users"] += 1
    if not db["user"].find_one({"email": "customer@demo.com"}):
        create_document(db, "user", User(
            first_name="John", last_name="Doe", email="customer@demo.com", phone="+1234567890",
            password_hash=hash_password("demo123"), is_email_verified=True,
            addresses=[{"_id": ObjectId(), "type": "shipping", "street": "123 Main St", "city": "New York", "state": "NY",
                        "zip_code": "10001", "country": "United States", "is_default": True}],
        ))
        created["users"] += 1

    if db["category"].count_documents({}) == 0:
        for order, (name, description, photo) in enumerate(CATEGORIES, start=1):
            slug = name.lower().replace(" ", "-")
            create_document(db, "category", Category(
                name=name, description=description, slug=slug, sort_order=order,
                image=f"https://images.unsplash.com/{photo}?w=400",
            ))
            created["categories"] += 1

    if db["product"].count_documents({}) == 0:
        categories = {c["slug"]: c["_id"] for c in db["category"].find({}, {"slug": 1})}
        for data in PRODUCTS:
            category_id = categories.get(data["category"])
            if category_id is None:
                continue
            fields = {**data, "category": category_id, "main_image": data["images"][0]}
            create_document(db, "product", Product(**fields))
            db["category"].update_one({"_id": category_id}, {"$inc": {"product_count": 1}})
            created["products"] += 1

    logger.info("Seeded %(users)d users, %(categories)d categories, %(products)d products", created)
    return created
