from datetime import datetime, timedelta, timezone

from app.services.memory_store import InMemoryAuthStore, SessionEntry

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def test_consume_otp_is_single_use():
    store = InMemoryAuthStore()
    store.put_otp("a@b.com", "123456", NOW + timedelta(minutes=10))

    assert store.consume_otp("a@b.com", "123456", now=NOW) is True
    assert store.consume_otp("a@b.com", "123456", now=NOW) is False


def test_wrong_code_keeps_entry():
    store = InMemoryAuthStore()
    store.put_otp("a@b.com", "123456", NOW + timedelta(minutes=10))

    assert store.consume_otp("a@b.com", "654321", now=NOW) is False
    assert store.consume_otp("a@b.com", "123456", now=NOW) is True


def test_new_otp_overwrites_pending_one():
    store = InMemoryAuthStore()
    store.put_otp("a@b.com", "111111", NOW + timedelta(minutes=10))
    store.put_otp("a@b.com", "222222", NOW + timedelta(minutes=10))

    assert store.consume_otp("a@b.com", "111111", now=NOW) is False
    assert store.consume_otp("a@b.com", "222222", now=NOW) is True


def test_expired_otp_is_rejected_at_read_time_but_kept_until_sweep():
    store = InMemoryAuthStore()
    store.put_otp("a@b.com", "123456", NOW + timedelta(minutes=10))
    later = NOW + timedelta(minutes=10)

    assert store.consume_otp("a@b.com", "123456", now=later) is False
    assert store.counts()["otp_codes"] == 1
    assert store.sweep(now=later) == (1, 0)
    assert store.counts()["otp_codes"] == 0


def test_session_lookup_respects_expiry():
    store = InMemoryAuthStore()
    entry = SessionEntry(admin_user_id=1, email="a@b.com", expires_at=NOW + timedelta(days=7))
    store.put_session("s1", entry)

    assert store.get_session("s1", now=NOW) == entry
    assert store.get_session("s1", now=NOW + timedelta(days=7)) is None
    assert store.get_session("missing", now=NOW) is None


def test_drop_session_returns_removed_entry():
    store = InMemoryAuthStore()
    entry = SessionEntry(admin_user_id=0, email="a@b.com", expires_at=NOW + timedelta(days=7))
    store.put_session("s1", entry)

    assert store.drop_session("s1") == entry
    assert store.drop_session("s1") is None
    assert store.get_session("s1", now=NOW) is None


def test_sweep_only_removes_expired_entries():
    store = InMemoryAuthStore()
    store.put_otp("old@b.com", "111111", NOW - timedelta(seconds=1))
    store.put_otp("new@b.com", "222222", NOW + timedelta(minutes=5))
    store.put_session("old", SessionEntry(1, "old@b.com", NOW - timedelta(seconds=1)))
    store.put_session("new", SessionEntry(2, "new@b.com", NOW + timedelta(days=1)))

    assert store.sweep(now=NOW) == (1, 1)
    assert store.counts() == {"otp_codes": 1, "sessions": 1}
