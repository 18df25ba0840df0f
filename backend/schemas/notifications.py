from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

BrowserPermission = Literal["default", "granted", "denied"]


class NotificationPreferencesRead(BaseModel):
    enable_browser_notifications: bool
    enable_email_notifications: bool
    notify_before_hours: float
    email_address: str
    browser_permission: BrowserPermission


class NotificationPreferencesUpdate(BaseModel):
    enable_browser_notifications: Optional[bool] = None
    enable_email_notifications: Optional[bool] = None
    notify_before_hours: Optional[float] = Field(default=None, gt=0)
    email_address: Optional[str] = None
    browser_permission: Optional[BrowserPermission] = None

    @field_validator("email_address")
    @classmethod
    def _email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if v and "@" not in v:
            raise ValueError("email_address must be an email address")
        return v


class NotificationRead(BaseModel):
    title: str
    body: str
    tag: str
    channel: str
    icon: str
    recipient: Optional[str] = None
    created_at: datetime
