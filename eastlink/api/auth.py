# eastlink/api/auth.py
from datetime import timedelta
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from eastlink.api.deps import get_current_user
from eastlink.core.config import settings
from eastlink.core.logging import business_log, security_log
from eastlink.core.rate_limit import auth_limiter, client_ip
from eastlink.core.security import create_token, generate_reset_token, hash_password, hash_reset_token, verify_password
from eastlink.db.mongo import get_db
from eastlink.models.schemas import (
    ForgotPasswordRequest, LoginRequest, ProfileUpdate, RegisterRequest, ResetPasswordRequest,
)
from eastlink.services.users_service import new_user, unique_store_slug
from eastlink.utils.email import send_email
from eastlink.utils.serializers import ok, utcnow

router = APIRouter(prefix="/auth", tags=["Authentication"])

RESET_MESSAGE = "If an account with that email exists, a password reset link has been sent."


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(auth_limiter)])
def register(payload: RegisterRequest, background_tasks: BackgroundTasks, db: Database = Depends(get_db)):
    if db.users.find_one({"email": payload.email}, {"_id": 1}):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists with this email")

    user = new_user(db, payload.model_dump(exclude_none=True))
    try:
        user["_id"] = db.users.insert_one(user).inserted_id
    except DuplicateKeyError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists with this email")

    business_log.user_registered(str(user["_id"]), user["email"], user["role"])
    background_tasks.add_task(send_email, user["email"], "welcome", {"name": user["first_name"]})

    return ok({"token": create_token(str(user["_id"])), "user": user}, "User registered successfully")


@router.post("/login", dependencies=[Depends(auth_limiter)])
def login(payload: LoginRequest, request: Request, db: Database = Depends(get_db)):
    ip = client_ip(request)
    user = db.users.find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user["password"]):
        security_log.login_attempt(payload.email, ip, False)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.get("is_active", True):
        security_log.login_attempt(payload.email, ip, False)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account has been deactivated")

    now = utcnow()
    db.users.update_one({"_id": user["_id"]}, {"$set": {"last_login": now}})
    user["last_login"] = now
    security_log.login_attempt(payload.email, ip, True)

    return ok({"token": create_token(str(user["_id"])), "user": user}, "Login successful")


@router.get("/profile")
def get_profile(user: Dict[str, Any] = Depends(get_current_user)):
    return ok(user)


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    updates = payload.model_dump(exclude_none=True)
    new_name = updates.get("business_name")
    if user.get("role") == "seller" and new_name and new_name != user.get("business_name"):
        updates["store_slug"] = unique_store_slug(db, updates["business_name"])
    if updates:
        updates["updated_at"] = utcnow()
        db.users.update_one({"_id": user["_id"]}, {"$set": updates})
    return ok(db.users.find_one({"_id": user["_id"]}), "Profile updated successfully")


@router.post("/logout")
def logout(user: Dict[str, Any] = Depends(get_current_user)):
    # tokens are stateless, the client drops its copy
    return ok(message="Logged out successfully")


@router.post("/forgot-password", dependencies=[Depends(auth_limiter)])
def forgot_password(payload: ForgotPasswordRequest, background_tasks: BackgroundTasks,
                    db: Database = Depends(get_db)):
    user = db.users.find_one({"email": payload.email.lower()})
    if user:
        raw, hashed = generate_reset_token()
        db.users.update_one({"_id": user["_id"]}, {"$set": {
            "reset_password_token": hashed,
            "reset_password_expire": utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        }})
        background_tasks.add_task(send_email, user["email"], "password_reset", {"user": user, "token": raw})
    return ok(message=RESET_MESSAGE)


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, db: Database = Depends(get_db)):
    user = db.users.find_one({
        "reset_password_token": hash_reset_token(payload.token),
        "reset_password_expire": {"$gt": utcnow()},
    })
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    db.users.update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password": hash_password(payload.password), "updated_at": utcnow()},
            "$unset": {"reset_password_token": "", "reset_password_expire": ""},
        },
    )
    return ok(message="Password has been reset successfully")
