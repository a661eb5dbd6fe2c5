"""
Community Files
Admin uploads stored on local disk, member downloads tracked per user
"""

import os
import re
import time
from datetime import datetime
from typing import List, Optional

import structlog
from fastapi import HTTPException, UploadFile
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.community.feed import author_view, load_authors
from app.core import messages
from app.core.config import get_config
from app.core.database import new_id, serialize_doc

logger = structlog.get_logger(__name__)

SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]
UPLOAD_CHUNK_BYTES = 1 << 20


def format_file_size(size: int) -> str:
    """1536 -> '1.5 KB'"""
    if size <= 0:
        return "0 Bytes"
    unit = 0
    value = float(size)
    while value >= 1024 and unit < len(SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {SIZE_UNITS[unit]}"


def sanitize_filename(name: str) -> str:
    name = os.path.basename(name or "file")
    name = re.sub(r"[^\w.\-]+", "_", name).strip("._")
    return name or "file"


def content_url(file_id: str) -> str:
    return f"/community/files/{file_id}/content"


def storage_path_for(storage_name: str) -> str:
    return os.path.join(get_config().FILES_STORAGE_DIR, storage_name)


# ==================== QUERIES ====================

async def list_files(db: AsyncIOMotorDatabase, user_id: Optional[str]) -> List[dict]:
    cursor = db.community_files.find({}, {"_id": 0}).sort("created_at", -1)
    files = await cursor.to_list(length=None)

    authors = await load_authors(db, [f["created_by"] for f in files if f.get("created_by")])

    downloaded = set()
    if user_id:
        rows = db.community_file_downloads.find({"user_id": user_id}, {"file_id": 1})
        downloaded = {row["file_id"] async for row in rows}

    for f in files:
        f["author"] = author_view(authors.get(f.get("created_by")))
        f["user_downloaded"] = f["file_id"] in downloaded
    return files


async def get_file(db: AsyncIOMotorDatabase, file_id: str) -> dict:
    record = await db.community_files.find_one({"file_id": file_id}, {"_id": 0})
    if not record:
        raise HTTPException(status_code=404, detail=messages.FILE_NOT_FOUND)
    return record


# ==================== UPLOAD ====================

async def upload_file(db: AsyncIOMotorDatabase, admin: dict, upload: UploadFile, metadata: dict) -> dict:
    """Stream the upload to disk in chunks; 413 once it passes the size cap"""
    config = get_config()
    if upload.size is not None and upload.size > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=messages.FILE_TOO_LARGE)

    storage_name = f"{int(time.time() * 1000)}_{sanitize_filename(upload.filename)}"
    os.makedirs(config.FILES_STORAGE_DIR, exist_ok=True)
    path = storage_path_for(storage_name)

    size = 0
    with open(path, "wb") as fh:
        while True:
            chunk = await upload.read(UPLOAD_CHUNK_BYTES)
            if not chunk:
                break
            size += len(chunk)
            if size > config.MAX_UPLOAD_BYTES:
                break
            fh.write(chunk)

    if size > config.MAX_UPLOAD_BYTES:
        os.remove(path)
        logger.warning("community_file_too_large", filename=upload.filename, created_by=admin["user_id"])
        raise HTTPException(status_code=413, detail=messages.FILE_TOO_LARGE)

    file_id = new_id("FILE")
    record = {
        "file_id": file_id,
        "title": metadata["title"].strip(),
        "description": metadata.get("description") or "",
        "file_type": metadata.get("file_type") or "other",
        "category": metadata.get("category") or "general",
        "file_size": format_file_size(size),
        "version": metadata.get("version") or "1.0",
        "storage_path": storage_name,
        "original_name": upload.filename,
        "content_type": upload.content_type,
        "file_url": content_url(file_id),
        "image_url": metadata.get("image_url"),
        "tags": metadata.get("tags") or [],
        "download_count": 0,
        "created_by": admin["user_id"],
        "created_at": datetime.utcnow(),
    }
    await db.community_files.insert_one(record)
    logger.info("community_file_uploaded", file_id=file_id, size=size, created_by=admin["user_id"])
    return serialize_doc(record)


# ==================== DOWNLOAD ====================

async def track_download(db: AsyncIOMotorDatabase, file_id: str, user_id: str) -> dict:
    """Every download counts; the per-user row only records the latest one"""
    await get_file(db, file_id)
    now = datetime.utcnow()
    await db.community_file_downloads.update_one(
        {"file_id": file_id, "user_id": user_id},
        {"$set": {"downloaded_at": now}},
        upsert=True
    )
    updated = await db.community_files.find_one_and_update(
        {"file_id": file_id},
        {"$inc": {"download_count": 1}},
        return_document=ReturnDocument.AFTER
    )
    return {"success": True, "file_url": updated["file_url"], "new_count": updated["download_count"]}


# ==================== DELETE ====================

async def delete_file(db: AsyncIOMotorDatabase, file_id: str) -> bool:
    record = await get_file(db, file_id)
    await db.community_file_downloads.delete_many({"file_id": file_id})
    await db.community_files.delete_one({"file_id": file_id})

    path = storage_path_for(record["storage_path"])
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("community_file_blob_missing", file_id=file_id, path=path)

    logger.info("community_file_deleted", file_id=file_id)
    return True
