from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


class PatchApplicationRead(BaseModel):
    id: UUID
    patch_type_id: str
    applied_at: datetime
    location: str
    notes: Optional[str] = None


class PatchApplicationCreate(BaseModel):
    patch_type_id: str
    location: str
    notes: Optional[str] = None
    # Defaults to now; lets a patch put on earlier be logged after the fact.
    applied_at: Optional[datetime] = None

    @field_validator("location")
    @classmethod
    def _strip_location(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("location is required")
        return v

    @field_validator("notes")
    @classmethod
    def _blank_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("applied_at")
    @classmethod
    def _not_in_future(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return None
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        if v > datetime.now(timezone.utc):
            raise ValueError("applied_at cannot be in the future")
        return v


class ActivePatchRead(BaseModel):
    id: UUID
    patch_type_id: str
    patch_type_name: Optional[str] = None
    location: str
    notes: Optional[str] = None
    applied_at: datetime
    change_at: datetime
    time_remaining_seconds: float
    is_expired: bool
    days_remaining: int
    hours_remaining: int


class UnapplyResult(BaseModel):
    application_id: UUID
    patch_type_id: str
