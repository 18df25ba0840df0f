import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from .database import Base, as_utc, utc_now


class PatchApplication(Base):
    """One patch put on the body. Rows are never edited, only removed or unapplied."""
    __tablename__ = "patch_applications"

    # Insertion order, assigned by the database; breaks ties when two patches are due at the same moment.
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(Uuid(as_uuid=True), nullable=False, unique=True, index=True, default=uuid.uuid4)
    patch_type_id = Column(String, ForeignKey("patch_types.id", ondelete="RESTRICT"), nullable=False, index=True)
    applied_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    location = Column(String, nullable=False)
    notes = Column(Text, nullable=True)

    patch_type = relationship("PatchType", back_populates="applications")

    @property
    def to_schema(self):
        """Convert PatchApplication model to schema dictionary format"""
        return {
            "id": self.id,
            "patch_type_id": self.patch_type_id,
            "applied_at": as_utc(self.applied_at),
            "location": self.location,
            "notes": self.notes,
        }
