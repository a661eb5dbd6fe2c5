"""
Sales Dashboard API
Site admins only (profile.is_admin)
"""

from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.admin import analytics
from app.auth.auth_utils import get_current_admin
from app.checkout.service import grant_manual_purchase
from app.core.database import get_db

router = APIRouter(prefix="/admin", tags=["Admin"])


class ManualPurchaseRequest(BaseModel):
    user_id: str
    has_upsell: bool = False


# ==================== DASHBOARD ====================

@router.get("/stats")
async def dashboard_stats(
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await analytics.get_stats(db)


@router.get("/yesterday")
async def yesterday_stats(
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await analytics.get_yesterday_stats(db)


@router.get("/charts/daily")
async def daily_chart(
    days: int = Query(7, ge=1, le=90),
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await analytics.get_daily_series(db, days)


@router.get("/lessons/analytics")
async def lesson_analytics(
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await analytics.get_lesson_analytics(db)


# ==================== USERS & PURCHASES ====================

@router.get("/users/recent")
async def recent_users(
    limit: int = Query(10, ge=1, le=100),
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await analytics.get_recent_users(db, limit)


@router.get("/users")
async def users_list(
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await analytics.get_users_list(db)


@router.get("/purchases/recent")
async def recent_purchases(
    limit: int = Query(10, ge=1, le=100),
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await analytics.get_recent_purchases(db, limit)


@router.post("/purchases/manual", status_code=201)
async def manual_purchase(
    data: ManualPurchaseRequest,
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Offline payment recorded by an admin"""
    await analytics.cache.clear()
    return await grant_manual_purchase(db, data.user_id, data.has_upsell)
