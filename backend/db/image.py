import uuid
from sqlalchemy import Column, LargeBinary, String, Uuid
from .database import Base


class Image(Base):
    """Stored image binary for custom patch type pictures."""
    __tablename__ = "images"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    data = Column(LargeBinary, nullable=False)
    content_type = Column(String(255), nullable=False)
