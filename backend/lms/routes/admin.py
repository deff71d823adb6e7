import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.acl import ROLES
from lms.database import get_session
from lms.auth import require_role, get_password_hash
from lms.models import User
from lms.schemas import UserResponse, UserUpdate
from lms.crud import get_all_users, get_user, save_user, delete_user, set_user_role

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=list[UserResponse])
async def admin_list_users(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    return await get_all_users(db)


@router.get("/users/{user_id}", response_model=UserResponse)
async def admin_get_user(
    user_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    user = await get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/users/{user_id}", response_model=UserResponse)
async def admin_update_user(
    user_id: int,
    data: UserUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    user = await get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if data.role is not None and data.role not in ROLES:
        raise HTTPException(status_code=400, detail="Unknown role")
    if data.password is not None:
        user.password_hash = get_password_hash(data.password)
    for field, value in data.model_dump(
        exclude_unset=True, exclude={"password", "role"}
    ).items():
        setattr(user, field, value)
    user = await save_user(db, user)
    if data.role is not None and data.role != user.role:
        logger.info("Admin %s changed role of %s to %s", current_user.email, user.email, data.role)
        user = await set_user_role(db, user, data.role)
    return user


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    user = await get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot delete yourself")
    await delete_user(db, user)
