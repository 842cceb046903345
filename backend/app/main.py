from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import activity, auth, health
from app.core.config import get_settings
from app.core.exceptions import AppError
from app.core.logging import configure_logging
from app.core.middleware import SecurityHeadersMiddleware
from app.db.bootstrap import ensure_auth_schema
from app.db.store import DurableStore
from app.services.auth import AuthService
from app.services.memory_store import InMemoryAuthStore
from app.services.scheduler import start_cleanup_scheduler, stop_cleanup_scheduler

settings = get_settings()
logger = logging.getLogger(__name__)


def build_auth_service() -> AuthService:
    store = DurableStore(
        settings.database_url,
        connect_timeout_seconds=settings.database_connect_timeout_seconds,
    )
    if store.connect():
        ensure_auth_schema(store)
    else:
        logger.warning("Durable store unavailable (%s); continuing with in-memory auth", store.last_error)
    return AuthService(store, InMemoryAuthStore(), settings=settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    auth_service = build_auth_service()
    app.state.auth_service = auth_service
    scheduler = None
    if settings.cleanup_scheduler_enabled:
        scheduler = start_cleanup_scheduler(auth_service, interval_minutes=settings.cleanup_interval_minutes)
    try:
        yield
    finally:
        stop_cleanup_scheduler(scheduler)
        auth_service.store.dispose()


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(SecurityHeadersMiddleware, settings=settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(auth.router, prefix=f"{settings.api_prefix}/auth", tags=["auth"])
app.include_router(activity.router, prefix=settings.api_prefix, tags=["activity"])
