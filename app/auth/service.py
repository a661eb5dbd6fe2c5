"""
Account service: sign up, sign in, profile and password reset
"""

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional

import structlog
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.auth.auth_utils import hash_password, verify_password, create_access_token
from app.checkout.service import has_completed_purchase, has_upsell
from app.core import messages
from app.core.database import new_id
from app.courses.database import get_completed_lessons

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 6
RESET_TOKEN_TTL = timedelta(hours=1)

PUBLIC_PROFILE_FIELDS = {"_id": 0, "password_hash": 0}


def normalize_email(email: str) -> str:
    return email.lower().strip()


async def get_profile(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    return await db.profiles.find_one({"user_id": user_id}, PUBLIC_PROFILE_FIELDS)


async def sign_up(db: AsyncIOMotorDatabase, email: str, password: str, name: str) -> dict:
    """Create account + profile, returns token and user"""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=messages.PASSWORD_TOO_SHORT)

    email = normalize_email(email)
    name = name.strip()

    if await db.profiles.find_one({"email": email}):
        raise HTTPException(status_code=409, detail=messages.EMAIL_EXISTS)

    user_id = new_id("USR")
    profile = {
        "user_id": user_id,
        "name": name,
        "email": email,
        "password_hash": hash_password(password),
        "avatar_url": None,
        "is_admin": False,
        "is_community_admin": False,
        "community_level": 1,
        "has_community_access": False,
        "community_trial_used": False,
        "created_at": datetime.utcnow(),
    }

    try:
        await db.profiles.insert_one(profile)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=messages.EMAIL_EXISTS)

    logger.info("user_signed_up", user_id=user_id)
    return {
        "token": create_access_token(user_id),
        "user": await build_user_object(db, user_id),
    }


async def sign_in(db: AsyncIOMotorDatabase, email: str, password: str) -> dict:
    profile = await db.profiles.find_one({"email": normalize_email(email)})
    if not profile or not verify_password(password, profile.get("password_hash")):
        raise HTTPException(status_code=401, detail=messages.INVALID_CREDENTIALS)

    logger.info("user_signed_in", user_id=profile["user_id"])
    return {
        "token": create_access_token(profile["user_id"]),
        "user": await build_user_object(db, profile["user_id"]),
    }


async def build_user_object(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    """Profile merged with purchase flags and completed lessons"""
    profile = await get_profile(db, user_id)
    if not profile:
        logger.warning("profile_missing", user_id=user_id)
        return None

    return {
        "user_id": user_id,
        "name": profile.get("name") or "",
        "email": profile.get("email") or "",
        "is_admin": profile.get("is_admin", False),
        "is_community_admin": profile.get("is_community_admin", False),
        "has_community_access": profile.get("has_community_access", False),
        "has_purchased": await has_completed_purchase(db, user_id),
        "has_upsell": await has_upsell(db, user_id),
        "completed_lessons": await get_completed_lessons(db, user_id),
    }


# ==================== PASSWORD RESET ====================

def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


async def request_password_reset(db: AsyncIOMotorDatabase, email: str) -> dict:
    """
    Issue a single-use reset token.
    The response is the same whether or not the account exists.
    """
    profile = await db.profiles.find_one({"email": normalize_email(email)})

    if profile:
        token = secrets.token_urlsafe(32)
        await db.password_resets.insert_one({
            "token_hash": _hash_token(token),
            "user_id": profile["user_id"],
            "expires_at": datetime.utcnow() + RESET_TOKEN_TTL,
            "used": False,
            "created_at": datetime.utcnow(),
        })
        # Delivery happens out of band (mail relay reads these events)
        logger.info(
            "password_reset_requested",
            user_id=profile["user_id"],
            reset_url=f"/#/reset-password?token={token}",
        )

    return {"status": "success", "message": messages.RESET_EMAIL_SENT}


async def reset_password(db: AsyncIOMotorDatabase, token: str, new_password: str) -> dict:
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=messages.PASSWORD_TOO_SHORT)

    now = datetime.utcnow()
    record = await db.password_resets.find_one_and_update(
        {"token_hash": _hash_token(token), "used": False, "expires_at": {"$gt": now}},
        {"$set": {"used": True, "used_at": now}}
    )
    if not record:
        raise HTTPException(status_code=400, detail=messages.INVALID_RESET_TOKEN)

    await db.profiles.update_one(
        {"user_id": record["user_id"]},
        {"$set": {"password_hash": hash_password(new_password)}}
    )

    logger.info("password_reset_completed", user_id=record["user_id"])
    return {"status": "success", "message": "Password updated"}


async def sign_out(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    """Tokens are stateless; forget saved playback positions"""
    result = await db.playback_positions.delete_many({"user_id": user_id})
    logger.info("user_signed_out", user_id=user_id, positions_cleared=result.deleted_count)
    return {"status": "success"}
