from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from lms.schemas import UserMeResponse, ProfileUpdate
from lms.models import User
from lms.database import get_session
from lms.crud import save_user, get_user
from lms.auth import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


def _me(user: User) -> UserMeResponse:
    return UserMeResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        bio=user.bio,
        profile_image_url=user.profile_image_url,
        permissions=sorted(p.name for p in user.permissions),
    )


@router.get("/me", response_model=UserMeResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Return details for the authenticated user."""
    return _me(current_user)


@router.put("/me", response_model=UserMeResponse)
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    await save_user(db, current_user)
    return _me(await get_user(db, current_user.id))
