"""Pydantic schemas for site settings."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class SiteSettingResponse(BaseModel):
    """Schema for a site setting."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    value: str
    description: Optional[str] = None


class SiteSettingUpdate(BaseModel):
    """Schema for writing a site setting."""

    value: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
