from datetime import datetime

import structlog
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import get_config
from app.core.database import get_db

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["System"])


async def check_dependencies(db: AsyncIOMotorDatabase) -> dict:
    """Snapshot of the services this API depends on"""
    config = get_config()
    record = {"timestamp": datetime.utcnow(), "status": {}}

    try:
        start = datetime.utcnow()
        await db.command("ping")
        record["status"]["database"] = "UP"
        record["latency_ms"] = (datetime.utcnow() - start).total_seconds() * 1000
    except Exception as e:
        logger.error("health_database_down", error=str(e))
        record["status"]["database"] = "DOWN"

    configured = bool(config.RAZORPAY_KEY_ID and config.RAZORPAY_KEY_SECRET)
    record["status"]["payment_gateway"] = "CONFIGURED" if configured else "MISSING_KEYS"
    return record


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/details")
async def health_details(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await check_dependencies(db)


@router.get("/version")
def get_version():
    return {"version": get_config().VERSION, "status": "stable"}
