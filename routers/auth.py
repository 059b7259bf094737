import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database

import emails
from config import EMAIL_VERIFICATION_HOURS, PASSWORD_RESET_MINUTES
from database import create_document, get_db, utcnow
from responses import envelope
from schemas import User
from security import (create_token, get_current_user, hash_password, hash_url_token, new_url_token, public_user,
                      verify_password)

logger = logging.getLogger("storefront.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"


class RegisterDTO(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class LoginDTO(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileDTO(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class ForgotPasswordDTO(BaseModel):
    email: EmailStr


class ResetPasswordDTO(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)


def update_profile(db: Database, user: Dict[str, Any], data: ProfileDTO) -> Dict[str, Any]:
    changes = data.model_dump(exclude_unset=True)
    db["user"].update_one({"_id": user["_id"]}, {"$set": {**changes, "updated_at": utcnow()}})
    return public_user(db["user"].find_one({"_id": user["_id"]}))


@router.post("/register", status_code=201)
def register(data: RegisterDTO, db: Database = Depends(get_db)):
    email = data.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")

    verification_token = new_url_token()
    user = User(
        first_name=data.first_name,
        last_name=data.last_name,
        email=email,
        password_hash=hash_password(data.password),
        phone=data.phone,
        email_verification_token=hash_url_token(verification_token),
        email_verification_expires=utcnow() + timedelta(hours=EMAIL_VERIFICATION_HOURS),
    )
    user_id = create_document(db, "user", user)

    sent, error = emails.send_verification_email(email, verification_token)
    if not sent:
        logger.warning("Verification email for %s not delivered: %s", email, error)

    doc = db["user"].find_one({"_id": user_id})
    return envelope({"user": public_user(doc), "token": create_token(user_id)},
                    message="Registration successful. Please check your email to verify your account.")


@router.post("/login")
def login(data: LoginDTO, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": data.email.lower()})
    if not user or not verify_password(data.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    now = utcnow()
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"last_login": now}})
    user["last_login"] = now
    return envelope({"user": public_user(user), "token": create_token(user["_id"])})


@router.post("/logout")
def logout():
    return envelope(message="Logged out successfully")


@router.get("/me")
def me(user: Dict[str, Any] = Depends(get_current_user)):
    return envelope(public_user(user))


@router.put("/profile")
def update_my_profile(data: ProfileDTO, user: Dict[str, Any] = Depends(get_current_user),
                      db: Database = Depends(get_db)):
    return envelope(update_profile(db, user, data))


@router.post("/forgot-password")
def forgot_password(data: ForgotPasswordDTO, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": data.email.lower()})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    reset_token = new_url_token()
    db["user"].update_one({"_id": user["_id"]}, {"$set": {
        "password_reset_token": hash_url_token(reset_token),
        "password_reset_expires": utcnow() + timedelta(minutes=PASSWORD_RESET_MINUTES),
    }})

    sent, error = emails.send_password_reset_email(user["email"], reset_token)
    if not sent:
        db["user"].update_one({"_id": user["_id"]},
                              {"$unset": {"password_reset_token": "", "password_reset_expires": ""}})
        logger.error("Password reset email for %s failed: %s", user["email"], error)
        raise HTTPException(status_code=500, detail="Email could not be sent")

    return envelope(message="Password reset email sent")


@router.post("/reset-password")
def reset_password(data: ResetPasswordDTO, db: Database = Depends(get_db)):
    user = db["user"].find_one({
        "password_reset_token": hash_url_token(data.token),
        "password_reset_expires": {"$gt": utcnow()},
    })
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    db["user"].update_one({"_id": user["_id"]}, {
        "$set": {"password_hash": hash_password(data.password), "updated_at": utcnow()},
        "$unset": {"password_reset_token": "", "password_reset_expires": ""},
    })
    return envelope(message="Password reset successful")


@router.get("/verify-email/{token}")
def verify_email(token: str, db: Database = Depends(get_db)):
    user = db["user"].find_one({
        "email_verification_token": hash_url_token(token),
        "email_verification_expires": {"$gt": utcnow()},
    })
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")

    db["user"].update_one({"_id": user["_id"]}, {
        "$set": {"is_email_verified": True},
        "$unset": {"email_verification_token": "", "email_verification_expires": ""},
    })
    return envelope(message="Email verified successfully")


@router.post("/resend-verification")
def resend_verification(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    if user.get("is_email_verified"):
        raise HTTPException(status_code=400, detail="Email is already verified")

    verification_token = new_url_token()
    db["user"].update_one({"_id": user["_id"]}, {"$set": {
        "email_verification_token": hash_url_token(verification_token),
        "email_verification_expires": utcnow() + timedelta(hours=EMAIL_VERIFICATION_HOURS),
    }})

    sent, error = emails.send_verification_email(user["email"], verification_token)
    if not sent:
        logger.error("Verification email for %s failed: %s", user["email"], error)
        raise HTTPException(status_code=500, detail="Email could not be sent")
    return envelope(message="Verification email sent")
