from __future__ import annotations

import logging

from sqlalchemy import inspect

from app.db.store import STORE_ERRORS, DurableStore

logger = logging.getLogger(__name__)

REQUIRED_TABLES: dict[str, set[str]] = {
    "admin_users": {"id", "email", "role", "is_active", "last_login_at"},
    "otp_codes": {"id", "email", "code", "expires_at", "used"},
    "admin_sessions": {"id", "admin_user_id", "expires_at"},
    "admin_activity_log": {"id", "admin_user_id", "action"},
}


def missing_schema(store: DurableStore) -> tuple[list[str], dict[str, list[str]]]:
    """Return (missing tables, missing columns per table) for the auth schema."""
    if store.engine is None:
        return sorted(REQUIRED_TABLES), {}
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    with store.engine.connect() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        for table_name, columns in REQUIRED_TABLES.items():
            if table_name not in table_names:
                missing_tables.append(table_name)
                continue
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            missing = sorted(columns - existing)
            if missing:
                missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_auth_schema(store: DurableStore) -> bool:
    if not store.available:
        return False
    try:
        missing_tables, missing_columns = missing_schema(store)
        if missing_tables:
            logger.info("Creating missing auth tables: %s", ", ".join(missing_tables))
            store.create_schema()
        if missing_columns:
            logger.warning(
                "Auth tables are missing columns %s. Run `alembic upgrade head` against this database.",
                missing_columns,
            )
    except STORE_ERRORS:
        logger.exception("Auth schema bootstrap failed; continuing with the in-memory store")
        return False
    return True
