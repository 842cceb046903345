from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import StoreUnavailableError
from app.db.base import Base

logger = logging.getLogger(__name__)

# Every durable call site catches these and falls through to the in-memory path.
STORE_ERRORS: tuple[type[Exception], ...] = (StoreUnavailableError, SQLAlchemyError)


def normalize_database_url(url: str) -> str:
    # Hosting providers emit `postgres://...`, which SQLAlchemy rejects.
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://") :]
    return url


def _connect_args(url: str, timeout_seconds: int) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    if url.startswith("postgresql"):
        return {"connect_timeout": timeout_seconds}
    return {}


class DurableStore:
    """Relational persistence for OTP codes, sessions and admin users.

    The store may be unconfigured or unreachable at runtime. `connect()` never
    raises; `session()` raises `StoreUnavailableError` when no engine exists,
    and SQLAlchemy errors from a flaky connection propagate to the caller.
    No retries happen here.
    """

    def __init__(self, database_url: str | None, *, connect_timeout_seconds: int = 10) -> None:
        self._database_url = normalize_database_url(database_url) if database_url else None
        self._connect_timeout_seconds = max(1, connect_timeout_seconds)
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._healthy = False
        self._last_error: str | None = None if database_url else "Database not configured"

    @classmethod
    def from_engine(cls, engine: Engine) -> "DurableStore":
        store = cls(None)
        store._bind(engine)
        store._healthy = True
        store._last_error = None
        return store

    @property
    def configured(self) -> bool:
        return self._engine is not None

    @property
    def available(self) -> bool:
        return self._engine is not None and self._healthy

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def engine(self) -> Engine | None:
        return self._engine

    def _bind(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    def connect(self) -> bool:
        if self._engine is None:
            if self._database_url is None:
                logger.warning("DATABASE_URL is not set; authentication will use the in-memory store only")
                return False
            try:
                self._bind(
                    create_engine(
                        self._database_url,
                        connect_args=_connect_args(self._database_url, self._connect_timeout_seconds),
                        pool_pre_ping=True,
                    )
                )
            except Exception as exc:
                self._last_error = f"Failed to create database engine: {exc}"
                logger.warning("Failed to create database engine", exc_info=True)
                return False
        return self.health_check()

    def health_check(self) -> bool:
        if self._engine is None:
            return False
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            self._healthy = False
            self._last_error = str(exc)
            logger.warning("Database health check failed: %s", exc)
            return False
        self._healthy = True
        self._last_error = None
        return True

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self._session_factory is None:
            raise StoreUnavailableError(self._last_error or "Database not available")
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_schema(self) -> None:
        if self._engine is None:
            raise StoreUnavailableError(self._last_error or "Database not available")
        import app.models  # noqa: F401

        Base.metadata.create_all(bind=self._engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
