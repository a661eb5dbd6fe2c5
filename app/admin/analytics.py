"""
Sales Dashboard Analytics
Stats, daily series and lesson engagement, cached briefly in memory
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core import messages
from app.core.config import COMPLETION_THRESHOLD

# Cache TTLs
DASHBOARD_STATS_TTL = 60
CHART_DATA_TTL = 60

ARABIC_WEEKDAYS = ["الإثنين", "الثلاثاء", "الأربعاء", "الخميس", "الجمعة", "السبت", "الأحد"]
ARABIC_MONTHS = [
    "يناير", "فبراير", "مارس", "أبريل", "مايو", "يونيو",
    "يوليو", "أغسطس", "سبتمبر", "أكتوبر", "نوفمبر", "ديسمبر",
]


# ==================== CACHE ====================

class CacheManager:
    """Simple in-memory cache with TTL"""

    def __init__(self):
        self._cache: Dict[str, Tuple[Any, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key in self._cache:
                value, expiry = self._cache[key]
                if datetime.utcnow() < expiry:
                    return value
                del self._cache[key]
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int):
        async with self._lock:
            self._cache[key] = (value, datetime.utcnow() + timedelta(seconds=ttl_seconds))

    async def clear(self):
        async with self._lock:
            self._cache.clear()


cache = CacheManager()


# ==================== HELPERS ====================

def format_relative_date(moment: datetime, now: Optional[datetime] = None) -> str:
    """Arabic relative time: minutes, hours, days, then a full date"""
    now = now or datetime.utcnow()
    diff = now - moment
    minutes = int(diff.total_seconds() // 60)
    hours = int(diff.total_seconds() // 3600)

    if minutes < 60:
        return f"منذ {max(minutes, 0)} دقيقة"
    if hours < 24:
        return f"منذ {hours} ساعة"
    if diff.days < 7:
        return f"منذ {diff.days} يوم"
    return f"{moment.day} {ARABIC_MONTHS[moment.month - 1]} {moment.year}"


async def _sum_revenue(db: AsyncIOMotorDatabase, match: dict) -> float:
    rows = await db.purchases.aggregate([
        {"$match": {"status": "completed", **match}},
        {"$group": {"_id": None, "total": {"$sum": "$amount_kwd"}}},
    ]).to_list(length=1)
    return round(rows[0]["total"], 2) if rows else 0


def _day_start(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


# ==================== DASHBOARD ====================

async def get_stats(db: AsyncIOMotorDatabase, now: Optional[datetime] = None) -> Dict:
    cached = await cache.get("dashboard:stats")
    if cached:
        return cached

    now = now or datetime.utcnow()
    total_users = await db.profiles.count_documents({})
    total_purchases = await db.purchases.count_documents({"status": "completed"})
    conversion_rate = round(total_purchases / total_users * 100, 1) if total_users else 0

    result = {
        "total_users": total_users,
        "total_purchases": total_purchases,
        "total_revenue": await _sum_revenue(db, {}),
        "conversion_rate": conversion_rate,
        "today_signups": await db.profiles.count_documents(
            {"created_at": {"$gte": now - timedelta(days=1)}}
        ),
        "weekly_revenue": await _sum_revenue(db, {"created_at": {"$gte": now - timedelta(days=7)}}),
    }
    await cache.set("dashboard:stats", result, DASHBOARD_STATS_TTL)
    return result


async def get_recent_users(db: AsyncIOMotorDatabase, limit: int = 10) -> List[Dict]:
    cursor = db.profiles.find(
        {}, {"_id": 0, "user_id": 1, "name": 1, "email": 1, "created_at": 1}
    ).sort("created_at", -1).limit(limit)
    users = await cursor.to_list(length=limit)

    buyers = set(await db.purchases.distinct(
        "user_id", {"status": "completed", "user_id": {"$in": [u["user_id"] for u in users]}}
    ))
    for user in users:
        user["has_purchased"] = user["user_id"] in buyers
        user["joined"] = format_relative_date(user["created_at"])
    return users


async def get_recent_purchases(db: AsyncIOMotorDatabase, limit: int = 10) -> List[Dict]:
    cursor = db.purchases.find(
        {"status": "completed"},
        {"_id": 0, "purchase_id": 1, "user_id": 1, "amount_kwd": 1, "has_upsell": 1, "created_at": 1}
    ).sort("created_at", -1).limit(limit)
    purchases = await cursor.to_list(length=limit)

    profiles = {
        p["user_id"]: p async for p in db.profiles.find(
            {"user_id": {"$in": [p["user_id"] for p in purchases]}},
            {"_id": 0, "user_id": 1, "name": 1, "email": 1}
        )
    }
    for purchase in purchases:
        profile = profiles.get(purchase["user_id"], {})
        purchase["user_name"] = profile.get("name") or messages.UNKNOWN_USER_NAME
        purchase["user_email"] = profile.get("email") or messages.UNKNOWN_USER_NAME
    return purchases


async def get_users_list(db: AsyncIOMotorDatabase) -> List[Dict]:
    cursor = db.profiles.find(
        {}, {"_id": 0, "user_id": 1, "name": 1, "email": 1, "created_at": 1}
    ).sort("created_at", -1)
    users = await cursor.to_list(length=None)

    latest = {}
    async for purchase in db.purchases.find({"status": "completed"}).sort("created_at", -1):
        latest.setdefault(purchase["user_id"], purchase)

    for user in users:
        purchase = latest.get(user["user_id"])
        user["has_purchased"] = purchase is not None
        user["purchase_amount"] = purchase["amount_kwd"] if purchase else None
        user["purchase_date"] = purchase["created_at"] if purchase else None
    return users


# ==================== CHARTS ====================

async def get_daily_series(db: AsyncIOMotorDatabase, days: int = 7, now: Optional[datetime] = None) -> List[Dict]:
    """Signups and revenue per day, oldest first, today included"""
    now = now or datetime.utcnow()
    cache_key = f"chart:daily:{days}:{_day_start(now).date()}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    start = _day_start(now) - timedelta(days=days - 1)
    buckets = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        buckets.append({
            "date": day.strftime("%Y-%m-%d"),
            "label": ARABIC_WEEKDAYS[day.weekday()],
            "signups": 0,
            "revenue": 0,
        })
    index = {bucket["date"]: bucket for bucket in buckets}

    async for profile in db.profiles.find({"created_at": {"$gte": start}}, {"created_at": 1}):
        bucket = index.get(profile["created_at"].strftime("%Y-%m-%d"))
        if bucket:
            bucket["signups"] += 1

    purchases = db.purchases.find(
        {"status": "completed", "created_at": {"$gte": start}}, {"created_at": 1, "amount_kwd": 1}
    )
    async for purchase in purchases:
        bucket = index.get(purchase["created_at"].strftime("%Y-%m-%d"))
        if bucket:
            bucket["revenue"] = round(bucket["revenue"] + (purchase.get("amount_kwd") or 0), 2)

    await cache.set(cache_key, buckets, CHART_DATA_TTL)
    return buckets


async def get_yesterday_stats(db: AsyncIOMotorDatabase, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.utcnow()
    today = _day_start(now)
    yesterday = today - timedelta(days=1)
    window = {"created_at": {"$gte": yesterday, "$lt": today}}
    return {
        "signups": await db.profiles.count_documents(window),
        "revenue": await _sum_revenue(db, window),
    }


async def get_lesson_analytics(db: AsyncIOMotorDatabase) -> List[Dict]:
    """Views, completion rate and average watch per lesson, most viewed first"""
    stats = {}
    async for row in db.progress.find({}, {"lesson_id": 1, "watch_percentage": 1}):
        entry = stats.setdefault(row["lesson_id"], {"views": 0, "total_watch": 0, "completed": 0})
        pct = row.get("watch_percentage") or 0
        entry["views"] += 1
        entry["total_watch"] += pct
        if pct >= COMPLETION_THRESHOLD:
            entry["completed"] += 1

    analytics = [
        {
            "lesson_id": lesson_id,
            "total_views": entry["views"],
            "completion_rate": round(entry["completed"] / entry["views"] * 100, 1),
            "avg_watch_percentage": round(entry["total_watch"] / entry["views"], 1),
        }
        for lesson_id, entry in stats.items()
    ]
    return sorted(analytics, key=lambda item: item["total_views"], reverse=True)
