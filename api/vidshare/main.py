from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Settings are read at import time, so the .env file must be loaded first
load_dotenv()

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from fastapi import APIRouter, FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from starlette.middleware.sessions import SessionMiddleware  # noqa: E402

from . import settings  # noqa: E402
from .cache import get_redis_client  # noqa: E402
from .errors import register_error_handlers  # noqa: E402
from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware  # noqa: E402
from .realtime import RoomBroadcaster  # noqa: E402
from .routers import (  # noqa: E402
    admin,
    auth,
    notifications,
    realtime,
    streaming,
    studio,
    system,
    users,
    videos,
)
from .services.media_host import MediaHostClient  # noqa: E402

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    cfg.attributes["configure_logger"] = False
    return cfg


def run_migrations() -> None:
    logger.info("Running Alembic migrations...")
    try:
        command.upgrade(_alembic_config(), "head")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise
    logger.info("Migrations completed.")


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        return
    run_migrations()
    _STARTUP_COMPLETE = True
    logger.info("Startup tasks completed.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    # Server won't start until migrations complete
    run_startup_tasks()

    broadcaster = RoomBroadcaster(redis_client=get_redis_client())
    await broadcaster.start()
    app.state.broadcaster = broadcaster
    app.state.media_host = MediaHostClient()
    logger.info("vidshare API server ready")
    yield
    # Shutdown
    logger.info("Shutting down application...")
    await broadcaster.stop()


app = FastAPI(
    title="vidshare API",
    version="1.0.0",
    description="Video sharing API: catalog, reactions, comments, watchers and live updates",
    lifespan=lifespan,
)

register_error_handlers(app)

if "*" in settings.CORS_ORIGINS:
    logger.warning(
        "CORS is configured to allow all origins. "
        "This is insecure for production. Set CORS_ORIGINS to specific domains."
    )

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    session_cookie="vidshare_session",
    max_age=settings.SESSION_MAX_AGE_SECONDS,
    same_site="lax",
    https_only=settings.ENVIRONMENT == "production",
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "Range", "X-Requested-With"],
    max_age=600,  # Cache preflight requests for 10 minutes
)

# Everything is served under /api
api = APIRouter(prefix="/api")
api.include_router(system.router)
api.include_router(auth.router)
api.include_router(users.router)
api.include_router(videos.router)
api.include_router(studio.router)
api.include_router(notifications.router)
api.include_router(streaming.router)
api.include_router(admin.router)
api.include_router(realtime.router)
app.include_router(api)
