from pydantic import BaseModel, Field, field_validator
from typing import Optional


class PatchTypeRead(BaseModel):
    id: str
    name: str
    duration_hours: float
    image_url: Optional[str] = None
    enabled: bool
    is_custom: bool


class PatchTypeCreate(BaseModel):
    name: str
    duration_hours: float = Field(gt=0)

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class PatchTypeUpdate(PatchTypeCreate):
    pass


class PatchImagePath(BaseModel):
    patch_type_id: str
    image_path: str
