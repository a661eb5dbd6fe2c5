from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, EmailStr

from app.auth import service
from app.auth.auth_utils import get_current_user
from app.core.database import get_db

router = APIRouter(prefix="/auth", tags=["Auth"])


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    name: str


class SignInRequest(BaseModel):
    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str


@router.post("/signup", status_code=201)
async def signup(data: SignUpRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await service.sign_up(db, data.email, data.password, data.name)


@router.post("/login")
async def login(data: SignInRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await service.sign_in(db, data.email, data.password)


@router.get("/me")
async def me(
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Current user with purchase flags and completed lessons"""
    return {
        "user": await service.build_user_object(db, user["user_id"]),
        "profile": user,
    }


@router.post("/logout")
async def logout(
    user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await service.sign_out(db, user["user_id"])


@router.post("/forgot-password")
async def forgot_password(data: ForgotPasswordRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await service.request_password_reset(db, data.email)


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await service.reset_password(db, data.token, data.new_password)
