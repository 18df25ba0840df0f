from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, String
from sqlalchemy.orm import relationship

from .database import Base, utc_now


class PatchType(Base):
    """A configured kind of patch. Built-in types use a readable slug as id."""
    __tablename__ = "patch_types"
    __table_args__ = (
        CheckConstraint("duration_hours > 0", name="ck_patch_types_duration_positive"),
    )

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    duration_hours = Column(Float, nullable=False)
    image_url = Column(String, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    is_custom = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    inventory = relationship(
        "InventoryEntry",
        back_populates="patch_type",
        uselist=False,
        cascade="all, delete-orphan",
    )
    applications = relationship("PatchApplication", back_populates="patch_type")

    @property
    def to_schema(self):
        """Convert PatchType model to schema dictionary format"""
        return {
            "id": self.id,
            "name": self.name,
            "duration_hours": self.duration_hours,
            "image_url": self.image_url,
            "enabled": bool(self.enabled),
            "is_custom": bool(self.is_custom),
        }
