import math
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, validator

from app.auth.auth_utils import get_current_admin, get_current_user, get_optional_user
from app.core import messages
from app.core.config import COMPLETION_THRESHOLD
from app.core.database import get_db
from app.courses import database as course_db
from app.courses import player
from app.courses.service import get_course_state, require_unlocked_lesson

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/course", tags=["Course"])

VIDEO_EVENTS = ("video_play", "video_progress", "video_milestone", "video_pause", "video_complete")


# ==================== MODELS ====================

class ProgressUpdate(BaseModel):
    percentage: float

    @validator("percentage")
    def finite(cls, v):
        if not math.isfinite(v):
            raise ValueError("percentage must be a finite number")
        return v


class PositionUpdate(BaseModel):
    position_seconds: int

    @validator("position_seconds")
    def non_negative(cls, v):
        if v < 0:
            raise ValueError("position_seconds must be >= 0")
        return v


class VideoEvent(BaseModel):
    event: str
    position_seconds: Optional[float] = None
    percent: Optional[int] = None
    milestone: Optional[int] = None
    playback_rate: Optional[float] = None

    @validator("event")
    def known_event(cls, v):
        if v not in VIDEO_EVENTS:
            raise ValueError(f"event must be one of {', '.join(VIDEO_EVENTS)}")
        return v


class LessonCreate(BaseModel):
    lesson_id: Optional[str] = None
    module_id: str
    module_title: str
    title: str
    duration: int = 0
    video_url: Optional[str] = None
    order_index: int
    is_free: bool = False


class LessonUpdate(BaseModel):
    module_id: Optional[str] = None
    module_title: Optional[str] = None
    title: Optional[str] = None
    duration: Optional[int] = None
    video_url: Optional[str] = None
    order_index: Optional[int] = None
    is_free: Optional[bool] = None


class ResourceCreate(BaseModel):
    title: str
    file_url: str
    file_type: str = "link"


# ==================== COURSE ====================

@router.get("/modules")
async def get_modules(
    user: Optional[dict] = Depends(get_optional_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Course outline with lock and completion flags for the caller"""
    return await get_course_state(db, user)


@router.get("/progress")
async def get_progress(
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    state = await get_course_state(db, user)
    return {
        **state["progress"],
        "last_watched_lesson": await course_db.get_last_watched_lesson(db, user["user_id"]),
        "completed_lesson_ids": await course_db.get_completed_lessons(db, user["user_id"]),
    }


@router.get("/lessons/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    user: Optional[dict] = Depends(get_optional_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    lesson = await require_unlocked_lesson(db, user, lesson_id)

    watch_percentage = 0
    resume_at = None
    if user:
        watch_percentage = await course_db.get_watch_percentage(db, user["user_id"], lesson_id)
        saved = await course_db.get_playback_position(db, user["user_id"], lesson_id)
        resume_at = player.resume_position(saved)

    return {
        **course_db.to_lesson_view(lesson),
        "module_id": lesson["module_id"],
        "embed_url": player.embed_url(lesson.get("video_url")),
        "resources": await course_db.get_lesson_resources(db, lesson_id),
        "watch_percentage": watch_percentage,
        "is_completed": watch_percentage >= COMPLETION_THRESHOLD,
        "resume_position": resume_at,
        "simulated_duration": player.SIMULATED_DURATION_SECONDS,
    }


@router.post("/lessons/{lesson_id}/progress")
async def update_progress(
    lesson_id: str,
    data: ProgressUpdate,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await require_unlocked_lesson(db, user, lesson_id)
    result = await course_db.update_watch_progress(db, user["user_id"], lesson_id, data.percentage)
    if result["completed"]:
        await course_db.clear_playback_position(db, user["user_id"], lesson_id)
    return result


@router.post("/lessons/{lesson_id}/complete")
async def complete_lesson(
    lesson_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await require_unlocked_lesson(db, user, lesson_id)
    result = await course_db.mark_lesson_complete(db, user["user_id"], lesson_id)
    await course_db.clear_playback_position(db, user["user_id"], lesson_id)
    logger.info("lesson_completed", user_id=user["user_id"], lesson_id=lesson_id)
    return result


# ==================== PLAYBACK ====================

@router.put("/lessons/{lesson_id}/position")
async def save_position(
    lesson_id: str,
    data: PositionUpdate,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await require_unlocked_lesson(db, user, lesson_id)
    await course_db.save_playback_position(db, user["user_id"], lesson_id, data.position_seconds)
    return {"success": True}


@router.get("/lessons/{lesson_id}/position")
async def get_position(
    lesson_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    saved = await course_db.get_playback_position(db, user["user_id"], lesson_id)
    return {"position_seconds": saved, "resume_position": player.resume_position(saved)}


@router.post("/lessons/{lesson_id}/events")
async def track_video_event(
    lesson_id: str,
    data: VideoEvent,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await require_unlocked_lesson(db, user, lesson_id)
    properties = {k: v for k, v in data.dict().items() if k != "event" and v is not None}
    properties["lesson_id"] = lesson_id
    await course_db.record_video_event(db, user["user_id"], data.event, properties)
    return {"success": True}


# ==================== ADMIN ====================

@router.post("/admin/lessons", status_code=201)
async def create_lesson(
    data: LessonCreate,
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await course_db.create_lesson(db, data.dict())


@router.patch("/admin/lessons/{lesson_id}")
async def update_lesson(
    lesson_id: str,
    data: LessonUpdate,
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = {k: v for k, v in data.dict().items() if v is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    lesson = await course_db.update_lesson(db, lesson_id, updates)
    if not lesson:
        raise HTTPException(status_code=404, detail=messages.LESSON_NOT_FOUND)
    return lesson


@router.delete("/admin/lessons/{lesson_id}")
async def delete_lesson(
    lesson_id: str,
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await course_db.delete_lesson(db, lesson_id):
        raise HTTPException(status_code=404, detail=messages.LESSON_NOT_FOUND)
    return {"success": True}


@router.post("/admin/lessons/{lesson_id}/resources", status_code=201)
async def add_resource(
    lesson_id: str,
    data: ResourceCreate,
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await course_db.get_lesson(db, lesson_id):
        raise HTTPException(status_code=404, detail=messages.LESSON_NOT_FOUND)
    return await course_db.add_lesson_resource(db, lesson_id, data.dict())


@router.delete("/admin/resources/{resource_id}")
async def delete_resource(
    resource_id: str,
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await course_db.delete_lesson_resource(db, resource_id):
        raise HTTPException(status_code=404, detail="Resource not found")
    return {"success": True}
