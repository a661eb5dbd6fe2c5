from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, EmailStr, validator

from app.auth.auth_utils import get_current_admin
from app.core.database import get_db, new_id

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/support", tags=["Support"])

TICKET_STATUSES = ("pending", "in_progress", "resolved")


class ContactRequest(BaseModel):
    name: str
    email: EmailStr
    message: str

    @validator("name", "message")
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("field is required")
        return v.strip()


class TicketStatusUpdate(BaseModel):
    status: str

    @validator("status")
    def known_status(cls, v):
        if v not in TICKET_STATUSES:
            raise ValueError(f"status must be one of {', '.join(TICKET_STATUSES)}")
        return v


@router.post("/contact", status_code=201)
async def contact(data: ContactRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Public contact form"""
    ticket = {
        "ticket_id": new_id("TKT"),
        "name": data.name,
        "email": data.email.lower(),
        "message": data.message,
        "status": "pending",
        "created_at": datetime.utcnow(),
    }
    await db.support_tickets.insert_one(ticket)
    logger.info("support_ticket_created", ticket_id=ticket["ticket_id"])
    return {"success": True, "ticket_id": ticket["ticket_id"], "message": "تم إرسال رسالتك بنجاح"}


@router.get("/tickets")
async def list_tickets(
    status: Optional[str] = None,
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    query = {"status": status} if status else {}
    cursor = db.support_tickets.find(query, {"_id": 0}).sort("created_at", -1)
    return await cursor.to_list(length=None)


@router.patch("/tickets/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    data: TicketStatusUpdate,
    admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await db.support_tickets.update_one(
        {"ticket_id": ticket_id},
        {"$set": {"status": data.status, "updated_at": datetime.utcnow()}}
    )
    if not result.matched_count:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return {"success": True, "ticket_id": ticket_id, "status": data.status}
