import os

# The app under test must not reach a real database or spawn the cleanup thread.
os.environ["DATABASE_URL"] = ""
os.environ["CLEANUP_SCHEDULER_ENABLED"] = "false"

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
import re

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from app.api.deps import get_auth_service
from app.core.config import Settings, get_settings
from app.db.store import DurableStore
from app.main import app
from app.services.auth import AuthService
from app.services.email import EmailDeliveryError
from app.services.memory_store import InMemoryAuthStore

START = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMailer:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.error: EmailDeliveryError | None = None

    def __call__(self, *, to_email: str, subject: str, html_content: str, text_content: str | None = None):
        if self.error is not None:
            raise self.error
        self.sent.append(
            {"to": to_email, "subject": subject, "html": html_content, "text": text_content or ""}
        )
        return "msg_test"

    def last_code(self, email: str) -> str:
        for message in reversed(self.sent):
            if message["to"] == email:
                match = re.search(r"\b(\d{6})\b", message["text"])
                assert match is not None
                return match.group(1)
        raise AssertionError(f"no email sent to {email}")


class BrokenStore(DurableStore):
    """Durable store whose every call fails like a dropped SSL connection."""

    def __init__(self) -> None:
        super().__init__("postgresql://auth.invalid/chyrris")

    @contextmanager
    def session(self):
        raise OperationalError("SELECT 1", {}, Exception("SSL SYSCALL error: EOF detected"))
        yield  # pragma: no cover


@pytest.fixture()
def settings():
    return Settings(
        _env_file=None,
        database_url=None,
        resend_api_key="re_test_key",
        cleanup_scheduler_enabled=False,
    )


@pytest.fixture()
def clock():
    return FakeClock(START)


@pytest.fixture()
def mailer():
    return FakeMailer()


@pytest.fixture()
def memory_store():
    return InMemoryAuthStore()


@pytest.fixture()
def durable_store():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = DurableStore.from_engine(engine)
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture()
def auth_service(durable_store, memory_store, settings, mailer, clock):
    return AuthService(durable_store, memory_store, settings=settings, send_email=mailer, clock=clock)


@pytest.fixture()
def broken_auth_service(memory_store, settings, mailer, clock):
    return AuthService(BrokenStore(), memory_store, settings=settings, send_email=mailer, clock=clock)


@pytest.fixture()
def client(auth_service, settings):
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    app.dependency_overrides[get_settings] = lambda: settings

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
