from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.api.deps import get_auth_service
from app.core.config import Settings, get_settings
from app.db.bootstrap import missing_schema
from app.db.store import STORE_ERRORS
from app.services.auth import AuthService

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
def health_ready(
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> dict:
    store = auth_service.store
    db_ok = store.health_check() if store.configured else False
    store_error = None if db_ok else store.last_error
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    if db_ok:
        try:
            missing_tables, missing_columns = missing_schema(store)
        except STORE_ERRORS as exc:  # pragma: no cover - environment dependent
            db_ok = False
            store_error = str(exc)
    schema_ok = db_ok and not missing_tables and not missing_columns

    # Login keeps working on the in-memory store, so a degraded database is not a 503.
    return {
        "status": "ok" if schema_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {
            "configured": store.configured,
            "ok": db_ok,
            "schema_ok": schema_ok,
            "missing_tables": missing_tables,
            "missing_columns": missing_columns,
            "error": store_error,
        },
        "email": {
            "configured": bool(settings.resend_api_key),
            "from": settings.email_from,
        },
        "memory_store": auth_service.memory.counts(),
    }
