"""
Community Administration
Member stats and moderator management
"""

import re
from typing import List, Optional

import structlog
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core import messages
from app.core.config import COMMUNITY_PRICE_KWD

logger = structlog.get_logger(__name__)

USER_FIELDS = {
    "_id": 0, "user_id": 1, "name": 1, "email": 1, "avatar_url": 1,
    "is_community_admin": 1, "has_community_access": 1, "community_level": 1, "created_at": 1,
}
USERS_LIMIT = 50


async def get_community_stats(db: AsyncIOMotorDatabase) -> dict:
    active = await db.community_subscriptions.count_documents({"status": "active"})
    trial = await db.community_subscriptions.count_documents({"status": "trial"})
    return {
        "total_members": await db.profiles.count_documents({"has_community_access": True}),
        "active_subscriptions": active + trial,
        "total_posts": await db.community_posts.count_documents({}),
        "monthly_revenue": active * COMMUNITY_PRICE_KWD,
        "admins_count": await db.profiles.count_documents({"is_community_admin": True}),
    }


async def list_admins(db: AsyncIOMotorDatabase) -> List[dict]:
    cursor = db.profiles.find({"is_community_admin": True}, USER_FIELDS).sort("name", 1)
    return await cursor.to_list(length=None)


async def list_users(db: AsyncIOMotorDatabase, search: Optional[str] = None) -> List[dict]:
    query = {}
    if search and search.strip():
        pattern = re.escape(search.strip())
        query = {"$or": [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
        ]}
    cursor = db.profiles.find(query, USER_FIELDS).sort("created_at", -1).limit(USERS_LIMIT)
    return await cursor.to_list(length=USERS_LIMIT)


async def set_community_admin(db: AsyncIOMotorDatabase, actor: dict, user_id: str, promote: bool) -> dict:
    if not promote and user_id == actor["user_id"]:
        raise HTTPException(status_code=400, detail=messages.CANNOT_DEMOTE_SELF)

    result = await db.profiles.update_one(
        {"user_id": user_id}, {"$set": {"is_community_admin": promote}}
    )
    if not result.matched_count:
        raise HTTPException(status_code=404, detail=messages.USER_NOT_FOUND)

    logger.info(
        "community_admin_promoted" if promote else "community_admin_demoted",
        user_id=user_id,
        actor_id=actor["user_id"]
    )
    return {"success": True, "user_id": user_id, "is_community_admin": promote}
