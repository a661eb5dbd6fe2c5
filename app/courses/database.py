from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.config import COMPLETION_THRESHOLD
from app.core.database import new_id, serialize_doc, serialize_many

# ==================== LESSONS ====================


def format_duration(minutes) -> str:
    return f"{minutes} دقيقة"


def to_lesson_view(lesson: dict) -> dict:
    return {
        "id": lesson["lesson_id"],
        "title": lesson["title"],
        "duration": format_duration(lesson.get("duration", 0)),
        "video_url": lesson.get("video_url"),
        "is_free": lesson.get("is_free", False),
        "is_locked": False,
    }


async def get_lessons(db: AsyncIOMotorDatabase) -> List[dict]:
    """All lessons ordered by order_index"""
    cursor = db.lessons.find({}, {"_id": 0}).sort("order_index", 1)
    return await cursor.to_list(length=None)


async def get_lesson(db: AsyncIOMotorDatabase, lesson_id: str) -> Optional[dict]:
    return await db.lessons.find_one({"lesson_id": lesson_id}, {"_id": 0})


def group_modules(lessons: List[dict]) -> List[dict]:
    """Group ordered lessons by module_id, keeping first-seen module order"""
    modules = {}
    for lesson in lessons:
        module = modules.get(lesson["module_id"])
        if module is None:
            module = {
                "id": lesson["module_id"],
                "title": lesson.get("module_title"),
                "lessons": [],
            }
            modules[lesson["module_id"]] = module
        module["lessons"].append(to_lesson_view(lesson))
    return list(modules.values())


async def get_modules(db: AsyncIOMotorDatabase) -> List[dict]:
    return group_modules(await get_lessons(db))


async def create_lesson(db: AsyncIOMotorDatabase, data: dict) -> dict:
    lesson = {
        "lesson_id": data.get("lesson_id") or new_id("LSN"),
        "module_id": data["module_id"],
        "module_title": data["module_title"],
        "title": data["title"],
        "duration": data.get("duration", 0),
        "video_url": data.get("video_url"),
        "order_index": data["order_index"],
        "is_free": data.get("is_free", False),
        "created_at": datetime.utcnow(),
    }
    await db.lessons.insert_one(lesson)
    return serialize_doc(lesson)


async def update_lesson(db: AsyncIOMotorDatabase, lesson_id: str, updates: dict) -> Optional[dict]:
    return await db.lessons.find_one_and_update(
        {"lesson_id": lesson_id},
        {"$set": updates},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER
    )


async def delete_lesson(db: AsyncIOMotorDatabase, lesson_id: str) -> bool:
    result = await db.lessons.delete_one({"lesson_id": lesson_id})
    if result.deleted_count:
        await db.resources.delete_many({"lesson_id": lesson_id})
        await db.progress.delete_many({"lesson_id": lesson_id})
    return result.deleted_count > 0


# ==================== PROGRESS ====================

async def get_progress_rows(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    cursor = db.progress.find({"user_id": user_id}, {"_id": 0})
    return await cursor.to_list(length=None)


async def get_completed_lessons(db: AsyncIOMotorDatabase, user_id: str) -> List[str]:
    """Lesson ids watched to the completion threshold"""
    cursor = db.progress.find(
        {"user_id": user_id, "watch_percentage": {"$gte": COMPLETION_THRESHOLD}},
        {"_id": 0, "lesson_id": 1}
    )
    return [row["lesson_id"] for row in await cursor.to_list(length=None)]


async def update_watch_progress(
    db: AsyncIOMotorDatabase,
    user_id: str,
    lesson_id: str,
    percentage: float
) -> dict:
    """
    Upsert watch percentage for (user, lesson).
    Once completed, a lower percentage does not un-complete the lesson.
    """
    percentage = max(0, min(100, int(round(percentage))))
    now = datetime.utcnow()

    existing = await db.progress.find_one({"user_id": user_id, "lesson_id": lesson_id})
    if existing and existing.get("watch_percentage", 0) >= COMPLETION_THRESHOLD:
        percentage = max(percentage, existing["watch_percentage"])

    updates = {"watch_percentage": percentage, "updated_at": now}
    if percentage >= COMPLETION_THRESHOLD and not (existing and existing.get("completed_at")):
        updates["completed_at"] = now

    await db.progress.update_one(
        {"user_id": user_id, "lesson_id": lesson_id},
        {"$set": updates, "$setOnInsert": {"created_at": now}},
        upsert=True
    )
    return {
        "lesson_id": lesson_id,
        "watch_percentage": percentage,
        "completed": percentage >= COMPLETION_THRESHOLD,
    }


async def mark_lesson_complete(db: AsyncIOMotorDatabase, user_id: str, lesson_id: str) -> dict:
    return await update_watch_progress(db, user_id, lesson_id, 100)


async def get_watch_percentage(db: AsyncIOMotorDatabase, user_id: str, lesson_id: str) -> int:
    row = await db.progress.find_one({"user_id": user_id, "lesson_id": lesson_id})
    if not row:
        return 0
    return row.get("watch_percentage") or 0


async def get_last_watched_lesson(db: AsyncIOMotorDatabase, user_id: str) -> Optional[str]:
    cursor = db.progress.find({"user_id": user_id}).sort("updated_at", -1).limit(1)
    rows = await cursor.to_list(length=1)
    return rows[0]["lesson_id"] if rows else None


# ==================== RESOURCES ====================

async def get_lesson_resources(db: AsyncIOMotorDatabase, lesson_id: str) -> List[dict]:
    cursor = db.resources.find({"lesson_id": lesson_id}).sort("created_at", 1)
    return serialize_many(await cursor.to_list(length=None))


async def add_lesson_resource(db: AsyncIOMotorDatabase, lesson_id: str, data: dict) -> dict:
    resource = {
        "resource_id": new_id("RES"),
        "lesson_id": lesson_id,
        "title": data["title"],
        "file_url": data["file_url"],
        "file_type": data.get("file_type", "link"),
        "created_at": datetime.utcnow(),
    }
    await db.resources.insert_one(resource)
    return serialize_doc(resource)


async def delete_lesson_resource(db: AsyncIOMotorDatabase, resource_id: str) -> bool:
    result = await db.resources.delete_one({"resource_id": resource_id})
    return result.deleted_count > 0


# ==================== PLAYBACK POSITIONS ====================

async def save_playback_position(
    db: AsyncIOMotorDatabase,
    user_id: str,
    lesson_id: str,
    position_seconds: int
) -> None:
    await db.playback_positions.update_one(
        {"user_id": user_id, "lesson_id": lesson_id},
        {"$set": {"position_seconds": position_seconds, "updated_at": datetime.utcnow()}},
        upsert=True
    )


async def get_playback_position(db: AsyncIOMotorDatabase, user_id: str, lesson_id: str) -> Optional[int]:
    row = await db.playback_positions.find_one({"user_id": user_id, "lesson_id": lesson_id})
    return row.get("position_seconds") if row else None


async def clear_playback_position(db: AsyncIOMotorDatabase, user_id: str, lesson_id: str) -> None:
    await db.playback_positions.delete_one({"user_id": user_id, "lesson_id": lesson_id})


# ==================== ANALYTICS EVENTS ====================

async def record_video_event(db: AsyncIOMotorDatabase, user_id: str, event: str, properties: dict) -> None:
    await db.analytics_events.insert_one({
        "event": event,
        "user_id": user_id,
        "properties": properties,
        "created_at": datetime.utcnow(),
    })
