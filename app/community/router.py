import os
from datetime import datetime
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, UploadFile
from fastapi.responses import FileResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, validator

from app.auth.auth_utils import get_community_admin, get_current_user
from app.checkout.gateway import get_payment_gateway
from app.community import admin as community_admin
from app.community import events, feed, files, subscriptions
from app.core import messages
from app.core.config import get_config
from app.core.database import get_db

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/community", tags=["Community"])


async def get_community_member(
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> dict:
    await subscriptions.require_community_access(db, user)
    return user


# ==================== MODELS ====================

class SubscribeRequest(BaseModel):
    redirect_url: Optional[str] = None


class PostCreate(BaseModel):
    title: str
    content: str
    category: str = "general"
    image_url: Optional[str] = None


class CommentCreate(BaseModel):
    content: str


class LockRequest(BaseModel):
    locked: bool


class EventCreate(BaseModel):
    title: str
    description: Optional[str] = ""
    event_date: str
    event_time: str
    event_type: Optional[str] = "meetup"
    max_attendees: Optional[int] = None
    is_online: bool = True
    location: Optional[str] = None
    meeting_link: Optional[str] = None
    image_url: Optional[str] = None

    @validator("event_date")
    def validate_date(cls, v):
        try:
            return datetime.strptime(v.strip(), "%Y-%m-%d").strftime("%Y-%m-%d")
        except ValueError:
            raise ValueError("event_date must be YYYY-MM-DD")

    @validator("event_time")
    def validate_time(cls, v):
        for fmt in ("%H:%M", "%H:%M:%S"):
            try:
                return datetime.strptime(v.strip(), fmt).strftime("%H:%M")
            except ValueError:
                continue
        raise ValueError("event_time must be HH:MM")

    @validator("max_attendees")
    def validate_capacity(cls, v):
        if v is not None and v < 1:
            raise ValueError("max_attendees must be positive")
        return v


# ==================== SUBSCRIPTION ====================

@router.get("/access")
async def community_access(
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await subscriptions.check_community_access(db, user)


@router.post("/trial")
async def start_trial(
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"success": True, "subscription": await subscriptions.start_free_trial(db, user)}


@router.post("/subscribe")
async def subscribe(
    data: SubscribeRequest,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway=Depends(get_payment_gateway)
):
    redirect_url = data.redirect_url or f"{get_config().APP_ORIGIN.rstrip('/')}/#/community/success"
    return await subscriptions.create_subscription(db, gateway, user, redirect_url)


@router.post("/renewals/run")
async def run_renewals(
    x_cron_secret: str = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway=Depends(get_payment_gateway)
):
    """Scheduled job entry point"""
    secret = get_config().RENEWALS_CRON_SECRET
    if not secret or x_cron_secret != secret:
        raise HTTPException(status_code=401, detail="Invalid cron secret")
    return await subscriptions.process_renewals(db, gateway)


# ==================== POSTS ====================

@router.get("/posts")
async def list_posts(
    category: Optional[str] = None,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await feed.list_posts(db, user["user_id"], category)


@router.post("/posts", status_code=201)
async def create_post(
    data: PostCreate,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await feed.create_post(db, user, data.title, data.content, data.category, data.image_url)


@router.get("/posts/{post_id}")
async def get_post(
    post_id: str,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await feed.get_post_with_comments(db, post_id, user["user_id"])


@router.delete("/posts/{post_id}")
async def delete_post(
    post_id: str,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"success": await feed.delete_post(db, user, post_id)}


@router.post("/posts/{post_id}/like")
async def like_post(
    post_id: str,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await feed.toggle_post_like(db, post_id, user["user_id"])


@router.post("/posts/{post_id}/pin")
async def pin_post(
    post_id: str,
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"is_pinned": await feed.toggle_post_pin(db, post_id)}


@router.post("/posts/{post_id}/lock")
async def lock_post(
    post_id: str,
    data: LockRequest,
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"is_locked": await feed.set_post_locked(db, post_id, data.locked)}


# ==================== COMMENTS ====================

@router.post("/posts/{post_id}/comments", status_code=201)
async def create_comment(
    post_id: str,
    data: CommentCreate,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await feed.create_comment(db, user, post_id, data.content)


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"success": await feed.delete_comment(db, user, comment_id)}


@router.post("/comments/{comment_id}/like")
async def like_comment(
    comment_id: str,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await feed.toggle_comment_like(db, comment_id, user["user_id"])


# ==================== EVENTS ====================

@router.get("/events")
async def list_events(
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await events.list_upcoming_events(db, user["user_id"])


@router.post("/events", status_code=201)
async def create_event(
    data: EventCreate,
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await events.create_event(db, admin, data.dict())


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: str,
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"success": await events.delete_event(db, event_id)}


@router.post("/events/{event_id}/register")
async def register_event(
    event_id: str,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await events.register_for_event(db, event_id, user["user_id"])


@router.delete("/events/{event_id}/register")
async def unregister_event(
    event_id: str,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await events.unregister_from_event(db, event_id, user["user_id"])


# ==================== FILES ====================

@router.get("/files")
async def list_files(
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await files.list_files(db, user["user_id"])


@router.post("/files", status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    title: str = Form(...),
    description: str = Form(""),
    file_type: str = Form("other"),
    category: str = Form("general"),
    version: str = Form("1.0"),
    image_url: Optional[str] = Form(None),
    tags: str = Form(""),
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    metadata = {
        "title": title,
        "description": description,
        "file_type": file_type,
        "category": category,
        "version": version,
        "image_url": image_url,
        "tags": [t.strip() for t in tags.split(",") if t.strip()],
    }
    return await files.upload_file(db, admin, file, metadata)


@router.post("/files/{file_id}/download")
async def download_file(
    file_id: str,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await files.track_download(db, file_id, user["user_id"])


@router.get("/files/{file_id}/content")
async def file_content(
    file_id: str,
    user: dict = Depends(get_community_member),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    record = await files.get_file(db, file_id)
    path = files.storage_path_for(record["storage_path"])
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail=messages.FILE_NOT_FOUND)
    return FileResponse(
        path,
        filename=record.get("original_name") or record["storage_path"],
        media_type=record.get("content_type") or "application/octet-stream"
    )


@router.delete("/files/{file_id}")
async def delete_file(
    file_id: str,
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"success": await files.delete_file(db, file_id)}


# ==================== ADMIN ====================

@router.get("/admin/stats")
async def admin_stats(
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await community_admin.get_community_stats(db)


@router.get("/admin/admins")
async def admin_list(
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> List[dict]:
    return await community_admin.list_admins(db)


@router.get("/admin/users")
async def admin_users(
    search: Optional[str] = None,
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await community_admin.list_users(db, search)


@router.post("/admin/users/{user_id}/promote")
async def promote(
    user_id: str,
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await community_admin.set_community_admin(db, admin, user_id, True)


@router.post("/admin/users/{user_id}/demote")
async def demote(
    user_id: str,
    admin: dict = Depends(get_community_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await community_admin.set_community_admin(db, admin, user_id, False)
