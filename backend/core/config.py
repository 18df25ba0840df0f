import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    database_url: str = os.getenv(
        "DATABASE_URL",
        "sqlite+aiosqlite:///./patches.db"
    )
    database_echo: bool = os.getenv("DATABASE_ECHO", "False").lower() == "true"

    # Auth
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_lifetime_seconds: int = int(os.getenv("JWT_LIFETIME_SECONDS", "3600"))

    # Reminders
    notification_check_interval_seconds: int = int(os.getenv("NOTIFICATION_CHECK_INTERVAL_SECONDS", "60"))
    low_inventory_threshold: int = int(os.getenv("LOW_INVENTORY_THRESHOLD", "3"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir: str = os.getenv("LOG_DIR", "logs")

    cors_origins: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


settings = Settings()
