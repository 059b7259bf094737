import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt
from fastapi import Depends, Header, HTTPException
from passlib.context import CryptContext
from pymongo.database import Database

from config import JWT_ALGORITHM, JWT_EXPIRE_DAYS, JWT_SECRET
from database import get_db, parse_object_id

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Fields never sent back to clients
PRIVATE_USER_FIELDS = (
    "password_hash",
    "email_verification_token",
    "email_verification_expires",
    "password_reset_token",
    "password_reset_expires",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_token(user_id: Any) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(days=JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> str:
    """Return the user id carried by ``token``."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")
    return user_id


def new_url_token() -> str:
    return secrets.token_hex(32)


def hash_url_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k not in PRIVATE_USER_FIELDS}


def get_current_user(authorization: Optional[str] = Header(default=None),
                     db: Database = Depends(get_db)) -> Dict[str, Any]:
    if not authorization:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    user_id = parse_object_id(decode_token(token.strip()))
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")
    user = db["user"].find_one({"_id": user_id}, {"password_hash": 0})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_roles(*roles: str) -> Callable[..., Dict[str, Any]]:
    def dependency(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        role = user.get("role", "customer")
        if role not in roles:
            raise HTTPException(status_code=403, detail=f"User role '{role}' is not authorized to access this route")
        return user

    return dependency


require_admin = require_roles("admin")
