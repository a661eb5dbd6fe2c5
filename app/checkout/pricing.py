from typing import Optional

from fastapi import HTTPException

from app.core import messages
from app.core.config import COUPONS, COURSE_PRICE_KWD, MIN_CHARGE_KWD, UPSELL_PRICE_KWD


def normalize_coupon(coupon: Optional[str]) -> Optional[str]:
    if not coupon or not coupon.strip():
        return None
    return coupon.strip().upper()


def quote(has_upsell: bool = False, coupon: Optional[str] = None) -> dict:
    """Price breakdown in KWD for the course (+ optional 1:1 meeting)"""
    subtotal = COURSE_PRICE_KWD + (UPSELL_PRICE_KWD if has_upsell else 0)

    code = normalize_coupon(coupon)
    percent = 0
    if code:
        if code not in COUPONS:
            raise HTTPException(status_code=400, detail=messages.INVALID_COUPON)
        percent = COUPONS[code]

    discount = round(subtotal * percent / 100, 2)
    total = max(round(subtotal - discount, 2), MIN_CHARGE_KWD)

    return {
        "subtotal": subtotal,
        "discount_percent": percent,
        "discount": discount,
        "total": total,
        "coupon_code": code,
        "has_upsell": has_upsell,
    }
