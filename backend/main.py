import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.auth import auth_backend, fastapi_users
from core.config import settings
from core.logging import setup_logging
from db.database import async_session_maker, create_db_and_tables
from routers.applications import router as applications_router
from routers.images import router as images_router
from routers.inventory import router as inventory_router
from routers.notifications import router as notifications_router
from routers.patch_types import router as patch_types_router
from schemas.users import UserCreate, UserRead, UserUpdate
from services.notifications import NotificationService
from services.patch_store import PatchStore
from services.preferences import get_preferences

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await create_db_and_tables()
    async with async_session_maker() as db:
        await PatchStore(db).seed_defaults()
        # the preferences row must exist before the first scan
        await get_preferences(db)

    notifications = NotificationService(
        async_session_maker,
        interval_seconds=settings.notification_check_interval_seconds,
        low_inventory_threshold=settings.low_inventory_threshold,
    )
    app.state.notifications = notifications
    notifications.start()
    try:
        yield
    finally:
        notifications.stop()


app = FastAPI(
    title="Patch Tracker API",
    description="API for tracking patch applications, inventory and change reminders",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"],)
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_reset_password_router(), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

# Image upload routes
app.include_router(images_router, prefix="/images", tags=["images"])

# Patch routes
app.include_router(patch_types_router, prefix="/patch-types", tags=["patch-types"])
app.include_router(applications_router, prefix="/applications", tags=["applications"])
app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])
app.include_router(notifications_router, prefix="/notifications", tags=["notifications"])


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
