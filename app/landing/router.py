from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import (
    COMMUNITY_PRICE_KWD,
    COMMUNITY_TRIAL_DAYS,
    COURSE_PRICE_KWD,
    CURRENCY,
    REFUND_GUARANTEE_DAYS,
    UPSELL_PRICE_KWD,
)
from app.core.database import get_db
from app.courses.database import get_modules
from app.landing.content import COURSE_OUTLINE, FAQS, TESTIMONIALS

router = APIRouter(tags=["Landing"])


@router.get("/landing")
async def landing(db: AsyncIOMotorDatabase = Depends(get_db)):
    """Marketing payload; the outline comes from the lessons table once it is seeded"""
    modules = await get_modules(db)
    for module in modules:
        for lesson in module["lessons"]:
            lesson.pop("video_url", None)
            lesson.pop("is_locked", None)

    return {
        "course_outline": modules or COURSE_OUTLINE,
        "testimonials": TESTIMONIALS,
        "faqs": FAQS,
        "prices": {
            "course": COURSE_PRICE_KWD,
            "upsell": UPSELL_PRICE_KWD,
            "community_monthly": COMMUNITY_PRICE_KWD,
            "currency": CURRENCY,
        },
        "community_trial_days": COMMUNITY_TRIAL_DAYS,
        "refund_guarantee_days": REFUND_GUARANTEE_DAYS,
    }
