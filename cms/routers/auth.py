from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from cms.database import get_db
from cms.dependencies import get_current_user_id, get_refresh_user_id
from cms.schemas import AccessToken, LoginRequest, MessageResponse, RegisterRequest, TokenPair
from cms.services import auth_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

@router.post("/register", status_code=201, response_model=TokenPair)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.register(db, data.email, data.password)

@router.post("/login", response_model=TokenPair)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await auth_service.login(db, data.email, data.password)

@router.post("/refresh", response_model=AccessToken)
async def refresh(user_id: str = Depends(get_refresh_user_id), db: AsyncSession = Depends(get_db)):
    return await auth_service.refresh(db, user_id)

@router.post("/logout", response_model=MessageResponse)
async def logout(user_id: str = Depends(get_current_user_id)):
    await auth_service.logout(user_id)
    return MessageResponse(message="Logged out successfully")
