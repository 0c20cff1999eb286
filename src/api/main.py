"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import auth, backups, bookmarks, health
from core.config import Settings, get_settings
from core.redis import RedisClient
from core.store import StoreUnavailableError, build_store
from services.auth_service import AuthService, CodeSender
from services.backup_service import BackupService
from services.classification_service import BookmarkClassifier, ClassificationEngine
from services.collection_service import CollectionRegistry

logger = logging.getLogger(__name__)


def init_app_state(
    app: FastAPI,
    settings: Settings,
    redis_client: RedisClient | None = None,
    classifier: BookmarkClassifier | None = None,
    code_sender: CodeSender | None = None,
) -> None:
    """
    Build the stores and services and attach them to app.state.

    Each logical store gets its own namespace. Without a connected Redis client
    the stores are in-memory and last as long as the process.
    """
    app.state.settings = settings
    app.state.redis_client = redis_client
    app.state.auth_service = AuthService.from_settings(
        settings,
        users=build_store("users", redis_client),
        sessions=build_store("sessions", redis_client),
        code_sender=code_sender,
    )
    app.state.backup_service = BackupService(
        build_store("backups", redis_client),
        salt=settings.backup_kdf_salt,
        iterations=settings.backup_kdf_iterations,
    )
    app.state.classification_engine = ClassificationEngine.from_settings(
        settings, classifier=classifier,
    )
    app.state.collections = CollectionRegistry()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: Connect to Redis (no-op when disabled)
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
    )
    await redis_client.connect()
    init_app_state(app, app_settings, redis_client=redis_client)

    yield

    # Shutdown: Clean up Redis
    await redis_client.close()


app_settings = get_settings()

app = FastAPI(
    title="Bookmark Hub API",
    description="Import, deduplicate, classify, check and back up browser bookmarks.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_exception_handler(
    _request: Request, exc: StoreUnavailableError,
) -> JSONResponse:
    """A write could not be persisted; nothing was changed."""
    logger.error("store_unavailable", extra={"error": str(exc)})
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage is temporarily unavailable. Please try again later."},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(bookmarks.router)
app.include_router(backups.router)
