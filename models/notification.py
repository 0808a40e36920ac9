# models/notification.py

from typing import Optional
from pydantic import BaseModel, Field

from models.enums import PushPlatform


class NotificationUpdate(BaseModel):
    """Only marking read/unread is supported."""
    is_read: bool = True


class PushTokenRegister(BaseModel):
    token: str = Field(..., min_length=1)
    platform: PushPlatform


class PushTokenRemove(BaseModel):
    token: str = Field(..., min_length=1)


class UserProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    avatar_url: Optional[str] = None
    onboarding_complete: Optional[bool] = None
