import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, EmailStr

from app.auth.auth_utils import get_current_user
from app.checkout import service
from app.checkout.gateway import get_payment_gateway, parse_webhook_event
from app.checkout.pricing import quote
from app.community.subscriptions import COMMUNITY_SUBSCRIPTION, handle_community_event
from app.core.database import get_db

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Checkout"])


class QuoteRequest(BaseModel):
    has_upsell: bool = False
    coupon_code: Optional[str] = None


class PaymentRequest(BaseModel):
    name: str
    email: Optional[EmailStr] = None
    has_upsell: bool = False
    coupon_code: Optional[str] = None
    origin: Optional[str] = None


class VerifyRequest(BaseModel):
    purchase_id: str
    charge_id: Optional[str] = None


# ==================== CHECKOUT ====================

@router.post("/checkout/quote")
async def checkout_quote(data: QuoteRequest):
    return quote(data.has_upsell, data.coupon_code)


@router.post("/checkout/payment")
async def create_payment(
    data: PaymentRequest,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway=Depends(get_payment_gateway)
):
    return await service.create_payment(
        db, gateway, user,
        name=data.name,
        email=data.email or user["email"],
        with_upsell=data.has_upsell,
        coupon=data.coupon_code,
        origin=data.origin
    )


@router.post("/checkout/verify")
async def verify_payment(
    data: VerifyRequest,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway=Depends(get_payment_gateway)
):
    return await service.verify_payment(db, gateway, user, data.charge_id, data.purchase_id)


@router.get("/checkout/purchases/{purchase_id}")
async def get_purchase(
    purchase_id: str,
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.get_purchase(db, user["user_id"], purchase_id)


# ==================== WEBHOOKS ====================

async def _read_verified_event(request: Request, gateway) -> tuple:
    """Raw body checked against X-Razorpay-Signature; 400 on mismatch"""
    body = await request.body()
    signature = request.headers.get("X-Razorpay-Signature")
    if not gateway.verify_webhook_signature(body, signature):
        logger.warning("webhook_signature_invalid", path=request.url.path)
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        raw = json.loads(body.decode() or "{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    return raw, parse_webhook_event(raw)


@router.post("/webhooks/payment")
async def payment_webhook(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway=Depends(get_payment_gateway)
):
    """Course purchase events; community charges on the same account are routed on"""
    raw, event = await _read_verified_event(request, gateway)
    logger.info(
        "payment_webhook_received",
        gateway_event=event["event"],
        charge_id=event["charge_id"],
        status=event["status"]
    )

    if event["notes"].get("type") == COMMUNITY_SUBSCRIPTION:
        return await handle_community_event(db, event)
    return await service.handle_payment_event(db, event, raw)


@router.post("/webhooks/community")
async def community_webhook(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway=Depends(get_payment_gateway)
):
    raw, event = await _read_verified_event(request, gateway)
    logger.info(
        "community_webhook_received",
        gateway_event=event["event"],
        charge_id=event["charge_id"],
        status=event["status"]
    )
    return await handle_community_event(db, event)
