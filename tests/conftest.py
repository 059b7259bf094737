import os
import tempfile

# Configure the app before it is imported: no real database, no outbound mail
os.environ["DATABASE_URL"] = ""
os.environ["DATABASE_NAME"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="storefront-uploads-"))

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import create_document, ensure_indexes, get_db
from main import app
from schemas import Category, Product, User
from security import create_token, hash_password

SHIPPING = {
    "first_name": "Jane",
    "last_name": "Doe",
    "street": "1 Market St",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "phone": "+15551234567",
}


@pytest.fixture
def db():
    database = mongomock.MongoClient().storefront
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, email="customer@example.com", role="customer", password="secret123", **extra):
    user = User(first_name="Test", last_name=role.title(), email=email, role=role,
                password_hash=hash_password(password), **extra)
    return create_document(db, "user", user)


def auth_header(user_id):
    return {"Authorization": f"Bearer {create_token(user_id)}"}


def make_category(db, name="Electronics", slug="electronics", **extra):
    category = Category(name=name, slug=slug, description=f"{name} department", image="https://img/cat.png", **extra)
    return create_document(db, "category", category)


def make_product(db, category_id, name="Widget", sku="W-1", price=10.0, stock=10, **extra):
    slug = extra.pop("slug", name.lower().replace(" ", "-"))
    product = Product(name=name, description=f"{name} description", price=price, category=category_id,
                      stock=stock, sku=sku, slug=slug, **extra)
    product_id = create_document(db, "product", product)
    db["category"].update_one({"_id": category_id}, {"$inc": {"product_count": 1}})
    return product_id


@pytest.fixture
def customer(db):
    return make_user(db)


@pytest.fixture
def customer_headers(customer):
    return auth_header(customer)


@pytest.fixture
def admin(db):
    return make_user(db, email="admin@example.com", role="admin")


@pytest.fixture
def admin_headers(admin):
    return auth_header(admin)


@pytest.fixture
def category(db):
    return make_category(db)
