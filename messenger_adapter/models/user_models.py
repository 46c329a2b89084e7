"""Pydantic models for Messenger user profiles."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class FacebookUserInfo(BaseModel):
    """User info from Facebook Graph API (public profile fields only)."""

    model_config = ConfigDict(extra="allow")

    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_pic: Optional[str] = None
    locale: Optional[str] = None
    timezone: Optional[float] = None
    gender: Optional[str] = None
