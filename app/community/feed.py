"""
Community Feed
Posts, comments and likes
"""

from datetime import datetime
from typing import List, Optional

import structlog
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.auth.auth_utils import is_community_admin
from app.core import messages
from app.core.database import new_id, serialize_doc

logger = structlog.get_logger(__name__)

CATEGORIES = ("general", "announcements", "success", "help")


# ==================== AUTHORS ====================

def author_view(profile: Optional[dict]) -> dict:
    if not profile:
        return {"full_name": messages.UNKNOWN_USER_NAME, "avatar_url": None, "level": 1, "is_admin": False}
    return {
        "full_name": profile.get("name"),
        "avatar_url": profile.get("avatar_url"),
        "level": profile.get("community_level", 1),
        "is_admin": is_community_admin(profile),
    }


async def load_authors(db: AsyncIOMotorDatabase, user_ids) -> dict:
    cursor = db.profiles.find(
        {"user_id": {"$in": list(set(user_ids))}},
        {"_id": 0, "user_id": 1, "name": 1, "avatar_url": 1, "community_level": 1,
         "is_admin": 1, "is_community_admin": 1}
    )
    return {p["user_id"]: p async for p in cursor}


async def _liked_ids(db, collection: str, key: str, ids: List[str], user_id: str) -> set:
    cursor = db[collection].find({key: {"$in": ids}, "user_id": user_id}, {key: 1})
    return {row[key] async for row in cursor}


# ==================== POSTS ====================

async def list_posts(db: AsyncIOMotorDatabase, user_id: str, category: Optional[str] = None) -> List[dict]:
    """Pinned first, then newest"""
    query = {"category": category} if category else {}
    cursor = db.community_posts.find(query, {"_id": 0}).sort([("is_pinned", -1), ("created_at", -1)])
    posts = await cursor.to_list(length=None)

    authors = await load_authors(db, [p["user_id"] for p in posts])
    liked = await _liked_ids(db, "community_post_likes", "post_id", [p["post_id"] for p in posts], user_id)
    for post in posts:
        post["author"] = author_view(authors.get(post["user_id"]))
        post["user_liked"] = post["post_id"] in liked
    return posts


async def get_post(db: AsyncIOMotorDatabase, post_id: str) -> dict:
    post = await db.community_posts.find_one({"post_id": post_id}, {"_id": 0})
    if not post:
        raise HTTPException(status_code=404, detail=messages.POST_NOT_FOUND)
    return post


async def get_post_with_comments(db: AsyncIOMotorDatabase, post_id: str, user_id: str) -> dict:
    post = await get_post(db, post_id)
    comments = await list_comments(db, post_id, user_id)

    authors = await load_authors(db, [post["user_id"]])
    liked = await _liked_ids(db, "community_post_likes", "post_id", [post_id], user_id)
    post["author"] = author_view(authors.get(post["user_id"]))
    post["user_liked"] = post_id in liked
    post["comments"] = comments
    return post


async def create_post(
    db: AsyncIOMotorDatabase,
    user: dict,
    title: str,
    content: str,
    category: str = "general",
    image_url: Optional[str] = None
) -> dict:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title or not content:
        raise HTTPException(status_code=400, detail="العنوان والمحتوى مطلوبان")

    if category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="تصنيف غير صالح")
    if category == "announcements" and not is_community_admin(user):
        raise HTTPException(status_code=403, detail=messages.ADMIN_ONLY)

    now = datetime.utcnow()
    post = {
        "post_id": new_id("POST"),
        "user_id": user["user_id"],
        "title": title,
        "content": content,
        "category": category,
        "image_url": image_url,
        "likes_count": 0,
        "comments_count": 0,
        "is_pinned": False,
        "is_locked": False,
        "created_at": now,
        "updated_at": now,
    }
    await db.community_posts.insert_one(post)
    logger.info("community_post_created", post_id=post["post_id"], user_id=user["user_id"], category=category)

    post = serialize_doc(post)
    post["author"] = author_view(user)
    post["user_liked"] = False
    return post


async def toggle_post_pin(db: AsyncIOMotorDatabase, post_id: str) -> bool:
    post = await get_post(db, post_id)
    pinned = not post.get("is_pinned", False)
    await db.community_posts.update_one(
        {"post_id": post_id},
        {"$set": {"is_pinned": pinned, "updated_at": datetime.utcnow()}}
    )
    return pinned


async def set_post_locked(db: AsyncIOMotorDatabase, post_id: str, locked: bool) -> bool:
    await get_post(db, post_id)
    await db.community_posts.update_one(
        {"post_id": post_id},
        {"$set": {"is_locked": locked, "updated_at": datetime.utcnow()}}
    )
    return locked


async def delete_post(db: AsyncIOMotorDatabase, user: dict, post_id: str) -> bool:
    post = await get_post(db, post_id)
    if post["user_id"] != user["user_id"] and not is_community_admin(user):
        raise HTTPException(status_code=403, detail=messages.NOT_AUTHOR)

    comment_ids = await db.community_comments.distinct("comment_id", {"post_id": post_id})
    await db.community_comment_likes.delete_many({"comment_id": {"$in": comment_ids}})
    await db.community_comments.delete_many({"post_id": post_id})
    await db.community_post_likes.delete_many({"post_id": post_id})
    await db.community_posts.delete_one({"post_id": post_id})

    logger.info("community_post_deleted", post_id=post_id, deleted_by=user["user_id"])
    return True


# ==================== COMMENTS ====================

async def list_comments(db: AsyncIOMotorDatabase, post_id: str, user_id: str) -> List[dict]:
    """Oldest first"""
    cursor = db.community_comments.find({"post_id": post_id}, {"_id": 0}).sort("created_at", 1)
    comments = await cursor.to_list(length=None)

    authors = await load_authors(db, [c["user_id"] for c in comments])
    liked = await _liked_ids(
        db, "community_comment_likes", "comment_id", [c["comment_id"] for c in comments], user_id
    )
    for comment in comments:
        comment["author"] = author_view(authors.get(comment["user_id"]))
        comment["user_liked"] = comment["comment_id"] in liked
    return comments


async def create_comment(db: AsyncIOMotorDatabase, user: dict, post_id: str, content: str) -> dict:
    content = (content or "").strip()
    if not content:
        raise HTTPException(status_code=400, detail="التعليق فارغ")

    post = await get_post(db, post_id)
    if post.get("is_locked"):
        raise HTTPException(status_code=403, detail=messages.POST_LOCKED)

    comment = {
        "comment_id": new_id("CMT"),
        "post_id": post_id,
        "user_id": user["user_id"],
        "content": content,
        "likes_count": 0,
        "created_at": datetime.utcnow(),
    }
    await db.community_comments.insert_one(comment)
    await db.community_posts.update_one({"post_id": post_id}, {"$inc": {"comments_count": 1}})

    comment = serialize_doc(comment)
    comment["author"] = author_view(user)
    comment["user_liked"] = False
    return comment


async def delete_comment(db: AsyncIOMotorDatabase, user: dict, comment_id: str) -> bool:
    comment = await db.community_comments.find_one({"comment_id": comment_id})
    if not comment:
        raise HTTPException(status_code=404, detail=messages.COMMENT_NOT_FOUND)
    if comment["user_id"] != user["user_id"] and not is_community_admin(user):
        raise HTTPException(status_code=403, detail=messages.NOT_AUTHOR)

    await db.community_comments.delete_one({"comment_id": comment_id})
    await db.community_comment_likes.delete_many({"comment_id": comment_id})
    await db.community_posts.update_one(
        {"post_id": comment["post_id"], "comments_count": {"$gt": 0}},
        {"$inc": {"comments_count": -1}}
    )
    return True


# ==================== LIKES ====================

async def _toggle_like(db, likes: str, targets: str, key: str, target_id: str, user_id: str) -> dict:
    """Flip (target, user) in the likes collection and keep the counter in step"""
    removed = await db[likes].delete_one({key: target_id, "user_id": user_id})
    if removed.deleted_count:
        doc = await db[targets].find_one_and_update(
            {key: target_id, "likes_count": {"$gt": 0}},
            {"$inc": {"likes_count": -1}},
            return_document=ReturnDocument.AFTER
        )
        if doc is None:
            doc = await db[targets].find_one({key: target_id})
        return {"liked": False, "new_count": (doc or {}).get("likes_count", 0)}

    try:
        await db[likes].insert_one({key: target_id, "user_id": user_id, "created_at": datetime.utcnow()})
    except DuplicateKeyError:
        doc = await db[targets].find_one({key: target_id})
        return {"liked": True, "new_count": (doc or {}).get("likes_count", 0)}

    doc = await db[targets].find_one_and_update(
        {key: target_id},
        {"$inc": {"likes_count": 1}},
        return_document=ReturnDocument.AFTER
    )
    return {"liked": True, "new_count": doc["likes_count"]}


async def toggle_post_like(db: AsyncIOMotorDatabase, post_id: str, user_id: str) -> dict:
    await get_post(db, post_id)
    return await _toggle_like(db, "community_post_likes", "community_posts", "post_id", post_id, user_id)


async def toggle_comment_like(db: AsyncIOMotorDatabase, comment_id: str, user_id: str) -> dict:
    if not await db.community_comments.find_one({"comment_id": comment_id}):
        raise HTTPException(status_code=404, detail=messages.COMMENT_NOT_FOUND)
    return await _toggle_like(
        db, "community_comment_likes", "community_comments", "comment_id", comment_id, user_id
    )
