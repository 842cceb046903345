import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

from app.core.exceptions import StoreUnavailableError
from app.db.bootstrap import ensure_auth_schema, missing_schema
from app.db.store import DurableStore, normalize_database_url


def test_normalize_database_url():
    assert normalize_database_url("postgres://u:p@db/app") == "postgresql+psycopg://u:p@db/app"
    assert normalize_database_url("postgresql://u:p@db/app") == "postgresql+psycopg://u:p@db/app"
    assert normalize_database_url("postgresql+psycopg://u:p@db/app") == "postgresql+psycopg://u:p@db/app"
    assert normalize_database_url("sqlite:///./auth.db") == "sqlite:///./auth.db"


def test_unconfigured_store_is_unavailable():
    store = DurableStore(None)

    assert store.connect() is False
    assert store.available is False
    assert store.last_error == "Database not configured"
    with pytest.raises(StoreUnavailableError):
        with store.session():
            pass


def test_connect_runs_health_check_on_sqlite():
    store = DurableStore("sqlite+pysqlite://")

    assert store.connect() is True
    assert store.available is True
    assert store.last_error is None
    store.dispose()


def test_session_rolls_back_on_error(durable_store):
    from app.models.admin_user import AdminUser

    with pytest.raises(RuntimeError):
        with durable_store.session() as db:
            db.add(AdminUser(email="rollback@b.com"))
            db.flush()
            raise RuntimeError("boom")

    with durable_store.session() as db:
        assert db.query(AdminUser).count() == 0


def test_ensure_auth_schema_creates_missing_tables():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = DurableStore.from_engine(engine)
    assert sorted(missing_schema(store)[0]) == ["admin_activity_log", "admin_sessions", "admin_users", "otp_codes"]

    assert ensure_auth_schema(store) is True

    assert missing_schema(store) == ([], {})
    assert {"admin_users", "otp_codes", "admin_sessions", "admin_activity_log"} <= set(inspect(engine).get_table_names())
    store.dispose()


def test_ensure_auth_schema_skips_unavailable_store():
    assert ensure_auth_schema(DurableStore(None)) is False
