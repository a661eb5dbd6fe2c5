# app/auth/auth_utils.py
"""
Token issuing and request guards
Bearer JWT (HS256) carrying the user_id in "sub"
"""

import hashlib
import hmac
import os
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import jwt, JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core import messages
from app.core.config import get_config
from app.core.database import get_db

PBKDF2_ITERATIONS = 260_000


# ==================== PASSWORDS ====================

def hash_password(password: str) -> str:
    salt = os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _, iterations, salt_hex, digest_hex = stored.split("$")
    except (AttributeError, ValueError):
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), bytes.fromhex(salt_hex), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), digest_hex)


# ==================== TOKENS ====================

def create_access_token(user_id: str) -> str:
    config = get_config()
    now = datetime.utcnow()
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(hours=config.JWT_EXPIRE_HOURS),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def _decode_jwt_token(token: str) -> dict:
    config = get_config()
    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1]


# ==================== DEPENDENCIES ====================

async def get_current_user(
    authorization: str = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> dict:
    """Resolve the caller's profile from the bearer token"""
    token = _extract_bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail=messages.LOGIN_REQUIRED)

    payload = _decode_jwt_token(token)
    profile = await db.profiles.find_one(
        {"user_id": payload.get("sub")}, {"_id": 0, "password_hash": 0}
    )
    if not profile:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")
    return profile


async def get_optional_user(
    authorization: str = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> Optional[dict]:
    """Same as get_current_user but anonymous callers get None"""
    if not _extract_bearer(authorization):
        return None
    return await get_current_user(authorization, db)


async def get_current_admin(user: dict = Depends(get_current_user)) -> dict:
    """Sales dashboard access"""
    if not user.get("is_admin"):
        raise HTTPException(status_code=403, detail=messages.ADMIN_ONLY)
    return user


def is_community_admin(user: Optional[dict]) -> bool:
    return bool(user) and bool(user.get("is_community_admin") or user.get("is_admin"))


async def get_community_admin(user: dict = Depends(get_current_user)) -> dict:
    """Community moderation access (site admins included)"""
    if not is_community_admin(user):
        raise HTTPException(status_code=403, detail=messages.ADMIN_ONLY)
    return user
