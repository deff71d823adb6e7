"""Endpoints for viewing and updating site-wide settings."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.database import get_session
from lms.models import User
from lms.auth import require_role
from lms.schemas import SettingsRead, SettingsUpdate
from lms.crud import get_settings, save_settings

router = APIRouter(prefix="/settings", tags=["settings"])


def _read(settings) -> SettingsRead:
    return SettingsRead(
        site_name=settings.site_name,
        default_pass_percentage=settings.default_pass_percentage,
        public_registration_disabled=settings.public_registration_disabled,
        ai_features_enabled=settings.ai_features_enabled,
    )


@router.get("/", response_model=SettingsRead)
async def read_settings(db: AsyncSession = Depends(get_session)):
    """Retrieve the current configuration values."""
    return _read(await get_settings(db))


@router.put("/", response_model=SettingsRead)
async def update_settings(
    data: SettingsUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role("admin")),
):
    """Update settings; only admins may change configuration."""
    settings = await get_settings(db)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(settings, field, value)
    return _read(await save_settings(db, settings))
