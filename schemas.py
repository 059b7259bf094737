"""
Storefront Database Schemas

Each Pydantic model below represents one MongoDB collection. The collection name is the lowercase
class name. Example: class User -> collection "user".

These schemas are used for validation before inserting documents. References to other
collections are stored as ObjectIds.
"""
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
ADDRESS_TYPES = ("shipping", "billing")
ROLES = ("customer", "admin")


class Record(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class Address(Record):
    type: str = Field(..., description="shipping | billing")
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "United States"
    is_default: bool = False


class Preferences(Record):
    favorite_categories: List[ObjectId] = []
    newsletter_subscription: bool = False


class User(Record):
    first_name: str
    last_name: str
    email: EmailStr
    password_hash: str
    phone: Optional[str] = None
    role: str = Field("customer", description="customer | admin")
    is_email_verified: bool = False
    email_verification_token: Optional[str] = None
    email_verification_expires: Optional[datetime] = None
    password_reset_token: Optional[str] = None
    password_reset_expires: Optional[datetime] = None
    addresses: List[dict] = []
    wishlist: List[ObjectId] = []
    preferences: Preferences = Field(default_factory=Preferences)
    last_login: Optional[datetime] = None


class Category(Record):
    name: str = Field(..., max_length=100)
    description: str = Field(..., max_length=500)
    image: str
    slug: str
    is_active: bool = True
    sort_order: int = 0
    product_count: int = 0


class ProductVariant(Record):
    size: Optional[str] = None
    color: Optional[str] = None
    stock: int = Field(..., ge=0)
    price: float = Field(..., ge=0)
    sku: str


class ProductSpecification(Record):
    name: str
    value: str


class Dimensions(Record):
    length: float = Field(0, ge=0)
    width: float = Field(0, ge=0)
    height: float = Field(0, ge=0)


class Product(Record):
    name: str = Field(..., max_length=200)
    description: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: ObjectId
    images: List[str] = []
    main_image: Optional[str] = None
    variants: List[ProductVariant] = []
    specifications: List[ProductSpecification] = []
    tags: List[str] = []
    is_featured: bool = False
    is_active: bool = True
    stock: int = Field(0, ge=0)
    sku: str
    brand: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None
    average_rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    view_count: int = Field(0, ge=0)
    slug: str
    meta_title: Optional[str] = Field(None, max_length=60)
    meta_description: Optional[str] = Field(None, max_length=160)


class Review(Record):
    user: ObjectId
    product: ObjectId
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=100)
    comment: str = Field(..., max_length=1000)
    is_approved: bool = False
    is_verified: bool = False
    helpful: int = Field(0, ge=0)


class OrderItem(Record):
    product: ObjectId
    name: str
    price: float
    quantity: int = Field(..., ge=1)
    variant: Optional[str] = None
    image: Optional[str] = None
    sku: str


class ShippingAddress(Record):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = "United States"
    phone: str = Field(..., min_length=1)


class Order(Record):
    user: ObjectId
    items: List[OrderItem]
    subtotal: float
    tax: float
    shipping: float
    total: float
    status: str = Field("pending", description="|".join(ORDER_STATUSES))
    payment_status: str = Field("pending", description="|".join(PAYMENT_STATUSES))
    payment_method: str
    shipping_address: ShippingAddress
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
