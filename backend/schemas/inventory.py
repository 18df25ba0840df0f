from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

MovementReason = Literal["APPLY", "UNAPPLY", "RESTOCK", "REMOVE"]


class InventoryEntryRead(BaseModel):
    patch_type_id: str
    count: int


class InventoryChange(BaseModel):
    count: int = Field(gt=0)


class InventoryAlertRead(BaseModel):
    patch_type_id: str
    patch_type_name: Optional[str] = None
    count: int
    is_low: bool
    is_out: bool


class InventoryMovementRead(BaseModel):
    id: UUID
    patch_type_id: str
    change: int
    reason: MovementReason
    application_id: Optional[UUID] = None
    created_at: datetime
