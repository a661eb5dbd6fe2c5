"""
Course access rules: lesson locking and progress summary
"""

from typing import List, Optional, Set

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.checkout.service import has_completed_purchase
from app.core import messages
from app.courses import database as course_db


def compute_locks(lessons: List[dict], purchased: bool, completed: Set[str]) -> dict:
    """
    lesson_id -> is_locked for lessons in course order.

    Without a purchase only free lessons open. With one, the first lesson
    opens and each later lesson opens once the one before it is completed.
    """
    locks = {}
    previous = None
    for index, lesson in enumerate(lessons):
        if not purchased:
            locks[lesson["lesson_id"]] = not lesson.get("is_free", False)
        elif index == 0:
            locks[lesson["lesson_id"]] = False
        else:
            locks[lesson["lesson_id"]] = previous not in completed
        previous = lesson["lesson_id"]
    return locks


def progress_summary(total: int, completed: int) -> dict:
    percent = round(completed / total * 100) if total else 0
    return {"total_lessons": total, "completed_lessons": completed, "percent": percent}


async def get_course_state(db: AsyncIOMotorDatabase, user: Optional[dict]) -> dict:
    lessons = await course_db.get_lessons(db)
    purchased = False
    completed = set()
    if user:
        purchased = await has_completed_purchase(db, user["user_id"])
        completed = set(await course_db.get_completed_lessons(db, user["user_id"]))

    locks = compute_locks(lessons, purchased, completed)
    modules = course_db.group_modules(lessons)
    for module in modules:
        for lesson in module["lessons"]:
            lesson["is_locked"] = locks[lesson["id"]]
            if lesson["is_locked"]:
                lesson["video_url"] = None
            lesson["is_completed"] = lesson["id"] in completed

    lesson_ids = {lesson["lesson_id"] for lesson in lessons}
    return {
        "has_purchased": purchased,
        "modules": modules,
        "progress": progress_summary(len(lessons), len(completed & lesson_ids)),
    }


async def require_unlocked_lesson(db: AsyncIOMotorDatabase, user: Optional[dict], lesson_id: str) -> dict:
    """The lesson if the caller may watch it; 404 unknown, 402 locked"""
    lessons = await course_db.get_lessons(db)
    lesson = next((l for l in lessons if l["lesson_id"] == lesson_id), None)
    if not lesson:
        raise HTTPException(status_code=404, detail=messages.LESSON_NOT_FOUND)

    purchased = False
    completed = set()
    if user:
        purchased = await has_completed_purchase(db, user["user_id"])
        completed = set(await course_db.get_completed_lessons(db, user["user_id"]))

    if compute_locks(lessons, purchased, completed)[lesson_id]:
        raise HTTPException(status_code=402, detail=messages.LESSON_LOCKED)
    return lesson
