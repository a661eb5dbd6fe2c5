"""
Community Subscriptions
Trial, monthly plan, gateway confirmation and saved-card renewals
"""

import calendar
from datetime import datetime, timedelta
from typing import Optional

import structlog
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.checkout.gateway import CAPTURED, CANCELLED, FAILED, GatewayError
from app.core import messages
from app.core.config import COMMUNITY_PRICE_KWD, COMMUNITY_TRIAL_DAYS, CURRENCY

logger = structlog.get_logger(__name__)

COMMUNITY_SUBSCRIPTION = "community_subscription"
COMMUNITY_RENEWAL = "community_renewal"

# Renew subscriptions whose period ends within this window
RENEWAL_WINDOW = timedelta(hours=24)


def add_one_month(moment: datetime) -> datetime:
    """Same day next month, clamped to the month's last day"""
    year = moment.year + (1 if moment.month == 12 else 0)
    month = 1 if moment.month == 12 else moment.month + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


async def get_subscription(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    return await db.community_subscriptions.find_one({"user_id": user_id}, {"_id": 0})


# ==================== ACCESS ====================

async def check_community_access(db: AsyncIOMotorDatabase, user: dict, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()

    if user.get("is_community_admin") or user.get("is_admin"):
        return {"has_access": True, "reason": "admin", "subscription": None}

    subscription = await get_subscription(db, user["user_id"])
    if subscription:
        period_end = subscription.get("current_period_end")
        if subscription.get("status") == "active" and period_end and period_end > now:
            return {"has_access": True, "reason": "active_subscription", "subscription": subscription}

        trial_end = subscription.get("trial_ends_at")
        if subscription.get("status") == "trial" and trial_end and trial_end > now:
            return {"has_access": True, "reason": "trial", "subscription": subscription}

        return {"has_access": False, "reason": "expired", "subscription": subscription}

    return {"has_access": False, "reason": "no_subscription", "subscription": None}


async def require_community_access(db: AsyncIOMotorDatabase, user: dict) -> None:
    access = await check_community_access(db, user)
    if not access["has_access"]:
        raise HTTPException(status_code=402, detail=messages.COMMUNITY_ACCESS_REQUIRED)


# ==================== TRIAL ====================

async def grant_trial(db: AsyncIOMotorDatabase, user_id: str, now: Optional[datetime] = None) -> dict:
    """Upsert a 7-day trial; a running paid period is left alone"""
    now = now or datetime.utcnow()

    existing = await get_subscription(db, user_id)
    if existing and existing.get("status") == "active" and (existing.get("current_period_end") or now) > now:
        logger.info("community_trial_skipped_active", user_id=user_id)
        return existing

    trial_ends_at = now + timedelta(days=COMMUNITY_TRIAL_DAYS)
    subscription = {
        "user_id": user_id,
        "status": "trial",
        "plan": "trial",
        "price": 0,
        "currency": CURRENCY,
        "trial_ends_at": trial_ends_at,
        "current_period_start": now,
        "current_period_end": trial_ends_at,
        "updated_at": now,
    }
    await db.community_subscriptions.update_one(
        {"user_id": user_id},
        {"$set": subscription, "$setOnInsert": {"created_at": now}},
        upsert=True
    )
    await db.profiles.update_one(
        {"user_id": user_id},
        {"$set": {"has_community_access": True, "community_trial_used": True}}
    )
    logger.info("community_trial_granted", user_id=user_id, trial_ends_at=trial_ends_at.isoformat())
    return subscription


async def start_free_trial(db: AsyncIOMotorDatabase, user: dict) -> dict:
    """Self-service trial, once per account"""
    if user.get("community_trial_used"):
        raise HTTPException(status_code=409, detail=messages.TRIAL_ALREADY_USED)
    return await grant_trial(db, user["user_id"])


# ==================== MONTHLY PLAN ====================

async def create_subscription(db: AsyncIOMotorDatabase, gateway, user: dict, redirect_url: str) -> dict:
    try:
        link = gateway.create_payment_link(
            amount_kwd=COMMUNITY_PRICE_KWD,
            description="اشتراك مجتمع 7DayApp الشهري",
            customer={"name": user.get("name") or user["email"], "email": user["email"]},
            notes={
                "type": COMMUNITY_SUBSCRIPTION,
                "user_id": user["user_id"],
                "plan": "monthly",
            },
            callback_url=redirect_url,
            save_card=True,
        )
    except GatewayError as e:
        logger.error("community_subscription_session_failed", user_id=user["user_id"], error=str(e))
        raise HTTPException(status_code=502, detail=messages.PAYMENT_SESSION_FAILED)

    now = datetime.utcnow()
    await db.community_subscriptions.update_one(
        {"user_id": user["user_id"]},
        {
            "$set": {
                "status": "pending",
                "plan": "monthly",
                "price": COMMUNITY_PRICE_KWD,
                "currency": CURRENCY,
                "charge_id": link["charge_id"],
                "updated_at": now,
            },
            "$setOnInsert": {"created_at": now},
        },
        upsert=True
    )
    logger.info("community_subscription_session_created", user_id=user["user_id"], charge_id=link["charge_id"])
    return {"payment_url": link["payment_url"], "charge_id": link["charge_id"]}


async def handle_community_event(db: AsyncIOMotorDatabase, event: dict) -> dict:
    """Apply a parsed gateway event for a community subscription charge"""
    notes = event.get("notes") or {}
    if notes.get("type") != COMMUNITY_SUBSCRIPTION:
        return {"success": True, "message": "Not a community subscription"}

    user_id = notes.get("user_id")
    subscription = await get_subscription(db, user_id) if user_id else None
    if not subscription:
        logger.warning("community_webhook_subscription_not_found", user_id=user_id)
        return {"success": False, "message": "Subscription not found"}

    now = datetime.utcnow()
    if event["status"] == CAPTURED:
        period_end = add_one_month(now)
        await db.community_subscriptions.update_one(
            {"user_id": user_id},
            {"$set": {
                "status": "active",
                "plan": "monthly",
                "current_period_start": now,
                "current_period_end": period_end,
                "charge_id": event["charge_id"],
                "last_charge_id": event.get("payment_id") or event["charge_id"],
                "customer_id": event.get("customer_id"),
                "token_id": event.get("token_id"),
                "card_last_four": event.get("card_last_four"),
                "card_brand": event.get("card_brand"),
                "updated_at": now,
            }}
        )
        await db.profiles.update_one({"user_id": user_id}, {"$set": {"has_community_access": True}})
        logger.info("community_subscription_activated", user_id=user_id, period_end=period_end.isoformat())
    elif event["status"] == FAILED:
        await db.community_subscriptions.update_one(
            {"user_id": user_id},
            {"$set": {"status": "inactive", "updated_at": now}}
        )
        logger.info("community_subscription_payment_failed", user_id=user_id)

    return {"success": True, "message": "Webhook processed"}


# ==================== RENEWALS ====================

async def process_renewals(db: AsyncIOMotorDatabase, gateway, now: Optional[datetime] = None) -> dict:
    """Charge saved cards for subscriptions ending within the next 24 hours"""
    now = now or datetime.utcnow()
    cursor = db.community_subscriptions.find({
        "status": "active",
        "token_id": {"$ne": None},
        "current_period_end": {"$lt": now + RENEWAL_WINDOW},
    }, {"_id": 0})

    results = []
    async for subscription in cursor:
        user_id = subscription["user_id"]
        try:
            profile = await db.profiles.find_one({"user_id": user_id}, {"email": 1})
            charge = gateway.charge_saved_card(
                amount_kwd=COMMUNITY_PRICE_KWD,
                email=(profile or {}).get("email"),
                customer_id=subscription.get("customer_id"),
                token_id=subscription["token_id"],
                notes={"type": COMMUNITY_RENEWAL, "user_id": user_id},
            )

            if charge["status"] == CAPTURED:
                new_end = add_one_month(subscription["current_period_end"])
                await db.community_subscriptions.update_one(
                    {"user_id": user_id},
                    {"$set": {
                        "current_period_start": subscription["current_period_end"],
                        "current_period_end": new_end,
                        "last_charge_id": charge["charge_id"],
                        "updated_at": datetime.utcnow(),
                    }}
                )
                results.append({"user_id": user_id, "status": "renewed", "new_period_end": new_end.isoformat()})
            elif charge["status"] in (FAILED, CANCELLED):
                await db.community_subscriptions.update_one(
                    {"user_id": user_id},
                    {"$set": {"status": "inactive", "updated_at": datetime.utcnow()}}
                )
                await db.profiles.update_one({"user_id": user_id}, {"$set": {"has_community_access": False}})
                results.append({"user_id": user_id, "status": "failed", "reason": "Payment declined"})
            else:
                results.append({"user_id": user_id, "status": "pending", "charge_status": charge["status"]})
        except GatewayError as e:
            logger.error("community_renewal_error", user_id=user_id, error=str(e))
            results.append({"user_id": user_id, "status": "error", "error": str(e)})

    summary = {
        "total_processed": len(results),
        "successful": sum(1 for r in results if r["status"] == "renewed"),
        "failed": sum(1 for r in results if r["status"] == "failed"),
        "errors": sum(1 for r in results if r["status"] == "error"),
        "pending": sum(1 for r in results if r["status"] == "pending"),
    }
    logger.info("community_renewals_processed", **summary)
    return {"success": True, "summary": summary, "results": results}
