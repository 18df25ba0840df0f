"""
Patch inventory.

Models:
- InventoryEntry (current count per patch type)
- InventoryMovement (one delta row per stock change; removed along with its patch type)
"""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from .database import Base, as_utc, utc_now


class InventoryEntry(Base):
    __tablename__ = "inventory"
    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_inventory_count_non_negative"),
    )

    patch_type_id = Column(String, ForeignKey("patch_types.id", ondelete="CASCADE"), primary_key=True)
    count = Column(Integer, nullable=False, default=0)

    patch_type = relationship("PatchType", back_populates="inventory")

    @property
    def to_schema(self):
        return {"patch_type_id": self.patch_type_id, "count": int(self.count or 0)}


class InventoryMovement(Base):
    __tablename__ = "inventory_movements"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patch_type_id = Column(String, ForeignKey("patch_types.id", ondelete="CASCADE"), nullable=False, index=True)

    change = Column(Integer, nullable=False)
    # 'APPLY' | 'UNAPPLY' | 'RESTOCK' | 'REMOVE'
    reason = Column(Text, nullable=False)
    application_id = Column(Uuid(as_uuid=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "patch_type_id": self.patch_type_id,
            "change": int(self.change),
            "reason": self.reason,
            "application_id": self.application_id,
            "created_at": as_utc(self.created_at),
        }
