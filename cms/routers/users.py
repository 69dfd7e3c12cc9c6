from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from cms.database import get_db
from cms.dependencies import PaginationParams, get_current_user_id
from cms.exceptions import ForbiddenError
from cms.models import Role
from cms.schemas import UserPage, UserResponse, UserUpdate
from cms.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


async def _require_self_or_admin(db: AsyncSession, caller_id: str, user_id: str):
    caller = await user_service.find_one(db, caller_id)
    if caller.id != user_id and caller.role != Role.ADMIN:
        raise ForbiddenError("You do not have permission to modify this user")
    return caller

@router.get("", response_model=UserPage)
async def list_users(
    pagination: PaginationParams = Depends(),
    _caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.find_all(db, pagination.page, pagination.limit)

@router.get("/me", response_model=UserResponse)
async def get_me(caller_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    return await user_service.find_one(db, caller_id)

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    _caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.find_one(db, user_id)

@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    data: UserUpdate,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    caller = await _require_self_or_admin(db, caller_id, user_id)
    if data.role is not None and caller.role != Role.ADMIN:
        raise ForbiddenError("Only an admin can change roles")
    return await user_service.update_user(db, user_id, data)

@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await _require_self_or_admin(db, caller_id, user_id)
    await user_service.remove_user(db, user_id)
