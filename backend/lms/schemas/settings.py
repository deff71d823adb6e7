"""Pydantic models for site-wide configuration settings."""

from pydantic import BaseModel, Field


class SettingsRead(BaseModel):
    site_name: str
    default_pass_percentage: int
    public_registration_disabled: bool
    ai_features_enabled: bool


class SettingsUpdate(BaseModel):
    site_name: str | None = None
    default_pass_percentage: int | None = Field(default=None, ge=0, le=100)
    public_registration_disabled: bool | None = None
    ai_features_enabled: bool | None = None
