import os
import logging

# Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("storefront")

# Security
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret_change_me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "30"))
EMAIL_VERIFICATION_HOURS = int(os.getenv("EMAIL_VERIFICATION_HOURS", "24"))
PASSWORD_RESET_MINUTES = int(os.getenv("PASSWORD_RESET_MINUTES", "10"))

# Store
STORE_NAME = os.getenv("STORE_NAME", "Storefront")
PRIMARY_CURRENCY = os.getenv("PRIMARY_CURRENCY", "USD")
TAX_RATE = float(os.getenv("TAX_RATE", "0.08"))  # 8%
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", "50.0"))
SHIPPING_FLAT = float(os.getenv("SHIPPING_FLAT", "5.99"))
LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "10"))

# HTTP
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Email
RESEND_API_KEY = (os.getenv("RESEND_API_KEY") or "").strip()
EMAIL_FROM = os.getenv("EMAIL_FROM", "Storefront <no-reply@storefront.local>")

# Uploads
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "uploads"))
UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "5"))
