from sqlalchemy import Boolean, Column, Float, Integer, String

from .database import Base


class NotificationPreferences(Base):
    """Single-row table (id=1) holding reminder settings."""
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, default=1)
    enable_browser_notifications = Column(Boolean, nullable=False, default=True)
    enable_email_notifications = Column(Boolean, nullable=False, default=False)
    notify_before_hours = Column(Float, nullable=False, default=24.0)
    email_address = Column(String, nullable=False, default="")
    # 'default' | 'granted' | 'denied', reported by the client
    browser_permission = Column(String, nullable=False, default="default")

    @property
    def to_schema(self):
        return {
            "enable_browser_notifications": bool(self.enable_browser_notifications),
            "enable_email_notifications": bool(self.enable_email_notifications),
            "notify_before_hours": float(self.notify_before_hours),
            "email_address": self.email_address or "",
            "browser_permission": self.browser_permission,
        }
