"""
Community Events
Calendar listing and capacity-limited registration
"""

from datetime import datetime
from typing import List, Optional

import structlog
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core import messages
from app.core.database import new_id, serialize_doc

logger = structlog.get_logger(__name__)


def _with_flags(event: dict, registered: set) -> dict:
    max_attendees = event.get("max_attendees")
    event["is_registered"] = event["event_id"] in registered
    event["is_full"] = bool(max_attendees) and event.get("attendees_count", 0) >= max_attendees
    return event


async def list_upcoming_events(db: AsyncIOMotorDatabase, user_id: Optional[str], today: Optional[str] = None) -> List[dict]:
    today = today or datetime.utcnow().strftime("%Y-%m-%d")
    cursor = db.community_events.find(
        {"event_date": {"$gte": today}}, {"_id": 0}
    ).sort([("event_date", 1), ("event_time", 1)])
    events = await cursor.to_list(length=None)

    registered = set()
    if user_id:
        rows = db.community_event_registrations.find({"user_id": user_id}, {"event_id": 1})
        registered = {row["event_id"] async for row in rows}

    return [_with_flags(event, registered) for event in events]


async def get_event(db: AsyncIOMotorDatabase, event_id: str) -> dict:
    event = await db.community_events.find_one({"event_id": event_id}, {"_id": 0})
    if not event:
        raise HTTPException(status_code=404, detail=messages.EVENT_NOT_FOUND)
    return event


async def create_event(db: AsyncIOMotorDatabase, admin: dict, data: dict) -> dict:
    if data.get("is_online") and not data.get("meeting_link"):
        raise HTTPException(status_code=400, detail="رابط الاجتماع مطلوب للفعاليات الأونلاين")
    if not data.get("is_online") and not data.get("location"):
        raise HTTPException(status_code=400, detail="الموقع مطلوب للفعاليات الحضورية")

    event = {
        "event_id": new_id("EVT"),
        "title": data["title"].strip(),
        "description": data.get("description") or "",
        "event_date": data["event_date"],
        "event_time": data["event_time"],
        "event_type": data.get("event_type") or "meetup",
        "max_attendees": data.get("max_attendees") or None,
        "attendees_count": 0,
        "is_online": bool(data.get("is_online")),
        "location": data.get("location"),
        "meeting_link": data.get("meeting_link"),
        "image_url": data.get("image_url"),
        "created_by": admin["user_id"],
        "created_at": datetime.utcnow(),
    }
    await db.community_events.insert_one(event)
    logger.info("community_event_created", event_id=event["event_id"], created_by=admin["user_id"])
    return serialize_doc(event)


async def delete_event(db: AsyncIOMotorDatabase, event_id: str) -> bool:
    await get_event(db, event_id)
    await db.community_event_registrations.delete_many({"event_id": event_id})
    await db.community_events.delete_one({"event_id": event_id})
    logger.info("community_event_deleted", event_id=event_id)
    return True


# ==================== REGISTRATION ====================

async def register_for_event(db: AsyncIOMotorDatabase, event_id: str, user_id: str) -> dict:
    event = await get_event(db, event_id)

    if await db.community_event_registrations.find_one({"event_id": event_id, "user_id": user_id}):
        return {"success": False, "message": messages.ALREADY_REGISTERED,
                "attendees_count": event.get("attendees_count", 0)}

    query = {"event_id": event_id}
    if event.get("max_attendees"):
        query["attendees_count"] = {"$lt": event["max_attendees"]}

    updated = await db.community_events.find_one_and_update(
        query, {"$inc": {"attendees_count": 1}}, return_document=ReturnDocument.AFTER
    )
    if updated is None:
        return {"success": False, "message": messages.EVENT_FULL,
                "attendees_count": event.get("attendees_count", 0)}

    try:
        await db.community_event_registrations.insert_one({
            "event_id": event_id,
            "user_id": user_id,
            "registered_at": datetime.utcnow(),
        })
    except DuplicateKeyError:
        updated = await db.community_events.find_one_and_update(
            {"event_id": event_id}, {"$inc": {"attendees_count": -1}}, return_document=ReturnDocument.AFTER
        )
        return {"success": False, "message": messages.ALREADY_REGISTERED,
                "attendees_count": updated["attendees_count"]}

    return {"success": True, "message": messages.REGISTERED, "attendees_count": updated["attendees_count"]}


async def unregister_from_event(db: AsyncIOMotorDatabase, event_id: str, user_id: str) -> dict:
    event = await get_event(db, event_id)

    removed = await db.community_event_registrations.delete_one({"event_id": event_id, "user_id": user_id})
    if not removed.deleted_count:
        return {"success": False, "message": messages.NOT_REGISTERED,
                "attendees_count": event.get("attendees_count", 0)}

    updated = await db.community_events.find_one_and_update(
        {"event_id": event_id, "attendees_count": {"$gt": 0}},
        {"$inc": {"attendees_count": -1}},
        return_document=ReturnDocument.AFTER
    )
    count = updated["attendees_count"] if updated else 0
    return {"success": True, "message": messages.UNREGISTERED, "attendees_count": count}
