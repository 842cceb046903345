"""Report on the durable auth store and optionally sweep expired records.

Run:
  PYTHONPATH=backend python scripts/check_auth_store.py [--cleanup]
"""

from __future__ import annotations

import sys

from sqlalchemy import func, select

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.store import STORE_ERRORS, DurableStore
from app.models.admin_session import AdminSession
from app.models.admin_user import AdminUser
from app.models.otp_code import OtpCode
from app.services.auth import AuthService, utc_now
from app.services.memory_store import InMemoryAuthStore


def _print_counts(store: DurableStore) -> None:
    now = utc_now()
    with store.session() as db:
        admins = db.execute(select(func.count()).select_from(AdminUser)).scalar_one()
        pending = db.execute(
            select(func.count()).select_from(OtpCode).where(OtpCode.used.is_(False), OtpCode.expires_at > now)
        ).scalar_one()
        expired_otps = db.execute(
            select(func.count()).select_from(OtpCode).where(OtpCode.expires_at < now)
        ).scalar_one()
        active_sessions = db.execute(
            select(func.count()).select_from(AdminSession).where(AdminSession.expires_at > now)
        ).scalar_one()
        expired_sessions = db.execute(
            select(func.count()).select_from(AdminSession).where(AdminSession.expires_at < now)
        ).scalar_one()

    print(f"Admin users:      {admins}")
    print(f"Pending OTPs:     {pending}")
    print(f"Expired OTPs:     {expired_otps}")
    print(f"Active sessions:  {active_sessions}")
    print(f"Expired sessions: {expired_sessions}")


def main(argv: list[str]) -> int:
    settings = get_settings()
    configure_logging(settings.log_level)
    store = DurableStore(settings.database_url, connect_timeout_seconds=settings.database_connect_timeout_seconds)
    if not store.connect():
        print(f"Durable store unavailable: {store.last_error}")
        return 1

    try:
        _print_counts(store)
        if "--cleanup" in argv:
            report = AuthService(store, InMemoryAuthStore(), settings=settings).cleanup_expired()
            print(
                f"Removed {report.durable_otp_codes_removed} OTP(s) "
                f"and {report.durable_sessions_removed} session(s)"
            )
    except STORE_ERRORS as exc:
        print(f"Durable store error: {exc}")
        return 1
    finally:
        store.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
