"""
Checkout Service
Purchase lifecycle: pending -> completed | failed
"""

from datetime import datetime
from typing import Optional

import structlog
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.checkout import gateway as gw
from app.checkout.pricing import quote
from app.community.subscriptions import grant_trial
from app.core import messages
from app.core.config import COURSE_PRICE_KWD, UPSELL_PRICE_KWD, get_config
from app.core.database import new_id, serialize_doc

logger = structlog.get_logger(__name__)

COURSE_PURCHASE = "course_purchase"


# ==================== QUERIES ====================

async def has_completed_purchase(db: AsyncIOMotorDatabase, user_id: str) -> bool:
    return await db.purchases.count_documents({"user_id": user_id, "status": "completed"}) > 0


async def has_upsell(db: AsyncIOMotorDatabase, user_id: str) -> bool:
    count = await db.purchases.count_documents(
        {"user_id": user_id, "status": "completed", "has_upsell": True}
    )
    return count > 0


async def get_purchase(db: AsyncIOMotorDatabase, user_id: str, purchase_id: str) -> dict:
    purchase = await db.purchases.find_one(
        {"purchase_id": purchase_id, "user_id": user_id}, {"_id": 0}
    )
    if not purchase:
        raise HTTPException(status_code=404, detail=messages.PURCHASE_NOT_FOUND)
    return purchase


# ==================== CREATE ====================

async def create_payment(
    db: AsyncIOMotorDatabase,
    gateway,
    user: dict,
    name: str,
    email: str,
    with_upsell: bool,
    coupon: Optional[str],
    origin: Optional[str] = None
) -> dict:
    name = (name or "").strip()
    if len(name) < 2:
        raise HTTPException(status_code=400, detail=messages.INVALID_NAME)

    if await has_completed_purchase(db, user["user_id"]):
        raise HTTPException(status_code=409, detail=messages.ALREADY_PURCHASED)

    price = quote(with_upsell, coupon)
    now = datetime.utcnow()
    purchase = {
        "purchase_id": new_id("PUR"),
        "user_id": user["user_id"],
        "amount_kwd": price["total"],
        "status": "pending",
        "has_upsell": with_upsell,
        "coupon_code": price["coupon_code"],
        "charge_id": None,
        "payment_ref": None,
        "metadata": {},
        "created_at": now,
        "updated_at": now,
    }
    await db.purchases.insert_one(purchase)

    origin = (origin or get_config().APP_ORIGIN).rstrip("/")
    try:
        link = gateway.create_payment_link(
            amount_kwd=price["total"],
            description="دورة بناء تطبيق في 7 أيام",
            customer={"name": name, "email": email or user.get("email")},
            notes={
                "purchase_id": purchase["purchase_id"],
                "user_id": user["user_id"],
                "has_upsell": str(with_upsell).lower(),
                "type": COURSE_PURCHASE,
            },
            callback_url=f"{origin}/#/success?ref={purchase['purchase_id']}",
        )
    except gw.GatewayError as e:
        logger.error("payment_session_failed", purchase_id=purchase["purchase_id"], error=str(e))
        await db.purchases.update_one(
            {"purchase_id": purchase["purchase_id"]},
            {"$set": {"status": "failed", "updated_at": datetime.utcnow()}}
        )
        raise HTTPException(status_code=502, detail=messages.PAYMENT_SESSION_FAILED)

    await db.purchases.update_one(
        {"purchase_id": purchase["purchase_id"]},
        {"$set": {"charge_id": link["charge_id"], "updated_at": datetime.utcnow()}}
    )
    logger.info(
        "payment_session_created",
        purchase_id=purchase["purchase_id"],
        charge_id=link["charge_id"],
        amount_kwd=price["total"]
    )
    return {
        "payment_url": link["payment_url"],
        "charge_id": link["charge_id"],
        "purchase_id": purchase["purchase_id"],
    }


# ==================== COMPLETE / FAIL ====================

async def complete_purchase(
    db: AsyncIOMotorDatabase,
    purchase: dict,
    charge_id: Optional[str],
    metadata: Optional[dict] = None
) -> dict:
    """
    Mark a purchase completed and start the community trial.
    Re-delivered events are no-ops.
    """
    if purchase.get("status") == "completed":
        return purchase

    updates = {
        "status": "completed",
        "charge_id": charge_id or purchase.get("charge_id"),
        "updated_at": datetime.utcnow(),
    }
    if metadata:
        updates["metadata"] = metadata

    result = await db.purchases.update_one(
        {"purchase_id": purchase["purchase_id"], "status": {"$ne": "completed"}},
        {"$set": updates}
    )
    if result.modified_count:
        logger.info(
            "purchase_completed",
            purchase_id=purchase["purchase_id"],
            user_id=purchase["user_id"],
            amount_kwd=purchase.get("amount_kwd")
        )
        try:
            await grant_trial(db, purchase["user_id"])
        except Exception as e:
            logger.error("community_trial_grant_failed", user_id=purchase["user_id"], error=str(e))

    return {**purchase, **updates}


async def fail_purchase(db: AsyncIOMotorDatabase, purchase: dict, charge_id: Optional[str], metadata=None) -> bool:
    """Completed purchases are never failed by a late event"""
    updates = {"status": "failed", "updated_at": datetime.utcnow()}
    if charge_id:
        updates["charge_id"] = charge_id
    if metadata:
        updates["metadata"] = metadata
    result = await db.purchases.update_one(
        {"purchase_id": purchase["purchase_id"], "status": {"$ne": "completed"}},
        {"$set": updates}
    )
    if result.modified_count:
        logger.info("purchase_failed", purchase_id=purchase["purchase_id"], charge_id=charge_id)
    return result.modified_count > 0


# ==================== WEBHOOK ====================

async def handle_payment_event(db: AsyncIOMotorDatabase, event: dict, raw: dict) -> dict:
    """Apply a parsed gateway event to its purchase; always acknowledged"""
    charge_id = event.get("charge_id")
    if not charge_id:
        logger.warning("payment_webhook_missing_charge_id", gateway_event=event.get("event"))
        return {"status": "error", "message": "Invalid webhook payload"}

    purchase_id = event["notes"].get("purchase_id")
    if not purchase_id:
        logger.warning("payment_webhook_missing_purchase_id", charge_id=charge_id)
        return {"status": "error", "message": "Missing purchase_id in metadata"}

    purchase = await db.purchases.find_one({"purchase_id": purchase_id}, {"_id": 0})
    if not purchase:
        logger.warning("payment_webhook_purchase_not_found", purchase_id=purchase_id)
        return {"status": "error", "message": "Purchase not found"}

    status = event["status"]
    if status == gw.CAPTURED:
        await complete_purchase(db, purchase, charge_id, raw)
    elif status in (gw.FAILED, gw.CANCELLED):
        await fail_purchase(db, purchase, charge_id, raw)
    else:
        logger.info("payment_webhook_pending", purchase_id=purchase_id, charge_id=charge_id)

    return {"status": "success", "purchase_id": purchase_id, "payment_status": status}


# ==================== VERIFY ====================

async def verify_payment(
    db: AsyncIOMotorDatabase,
    gateway,
    user: dict,
    charge_id: Optional[str],
    purchase_id: str
) -> dict:
    """Success-page fallback when the webhook has not landed yet"""
    purchase = await db.purchases.find_one(
        {"purchase_id": purchase_id, "user_id": user["user_id"]}, {"_id": 0}
    )
    if not purchase:
        raise HTTPException(status_code=404, detail=messages.PURCHASE_NOT_FOUND)

    if purchase["status"] == "completed":
        return {"success": True, "status": "completed", "purchase": purchase}

    charge_id = charge_id or purchase.get("charge_id")
    if not charge_id:
        return {"success": False, "status": purchase["status"]}

    try:
        status = gateway.fetch_status(charge_id)
    except gw.GatewayError:
        raise HTTPException(status_code=502, detail=messages.NETWORK_ERROR)

    if status == gw.CAPTURED:
        purchase = await complete_purchase(db, purchase, charge_id)
        return {"success": True, "status": "completed", "purchase": purchase}

    return {"success": False, "status": status.lower()}


# ==================== ADMIN ====================

async def grant_manual_purchase(db: AsyncIOMotorDatabase, user_id: str, with_upsell: bool = False) -> dict:
    """Record an offline payment as a completed purchase"""
    profile = await db.profiles.find_one({"user_id": user_id})
    if not profile:
        raise HTTPException(status_code=404, detail=messages.USER_NOT_FOUND)

    now = datetime.utcnow()
    purchase = {
        "purchase_id": new_id("PUR"),
        "user_id": user_id,
        "amount_kwd": COURSE_PRICE_KWD + (UPSELL_PRICE_KWD if with_upsell else 0),
        "status": "completed",
        "has_upsell": with_upsell,
        "coupon_code": None,
        "charge_id": None,
        "payment_ref": f"manual-{int(now.timestamp() * 1000)}",
        "metadata": {"source": "admin"},
        "created_at": now,
        "updated_at": now,
    }
    await db.purchases.insert_one(purchase)
    logger.info("manual_purchase_granted", user_id=user_id, purchase_id=purchase["purchase_id"])
    return serialize_doc(purchase)
