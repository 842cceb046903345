"""OTP login and session lifecycle over a durable store with an in-memory fallback.

Every durable call is best-effort: failures are logged at the call site and
the in-memory store carries the operation. Only business outcomes (wrong or
expired code, disabled account, undeliverable email) reach the caller, and
they arrive as result objects rather than exceptions.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import partial
import logging
from typing import Literal, Union

from app.core.config import Settings
from app.core.exceptions import StoreUnavailableError
from app.db import repository
from app.db.store import STORE_ERRORS, DurableStore
from app.models.admin_user import AdminRole, AdminUser
from app.services import email as email_service
from app.services.audit import log_activity
from app.services.email import EmailDeliveryError
from app.services.memory_store import InMemoryAuthStore, SessionEntry
from app.services.otp import generate_otp_code, generate_session_id

logger = logging.getLogger(__name__)

INVALID_CODE_ERROR = "Invalid or expired code"
DISABLED_ACCOUNT_ERROR = "Account is disabled"
EMAIL_NOT_CONFIGURED_ERROR = "Email service not configured"
OTP_EMAIL_SUBJECT = "Your Chyrris KAI Login Code"

# Admin id used when no durable user record could be resolved.
SENTINEL_ADMIN_USER_ID = 0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_dt(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _session_hint(session_id: str) -> str:
    return f"{session_id[:6]}..."


@dataclass(frozen=True)
class SendOtpResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class VerifyOtpResult:
    success: bool
    session_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class DurableUser:
    id: int
    email: str
    name: str | None
    role: AdminRole
    is_active: bool
    last_login_at: datetime | None
    source: Literal["durable"] = "durable"

    @classmethod
    def from_record(cls, record: AdminUser) -> "DurableUser":
        return cls(
            id=record.id,
            email=record.email,
            name=record.name,
            role=AdminRole(record.role),
            is_active=bool(record.is_active),
            last_login_at=normalize_dt(record.last_login_at),
        )


@dataclass(frozen=True)
class SynthesizedUser:
    """Stand-in admin built from an in-memory session when the store cannot answer."""

    id: int
    email: str
    name: str
    role: AdminRole = AdminRole.admin
    is_active: bool = True
    last_login_at: datetime | None = None
    source: Literal["synthesized"] = "synthesized"

    @classmethod
    def for_session(cls, entry: SessionEntry) -> "SynthesizedUser":
        return cls(id=entry.admin_user_id, email=entry.email, name=entry.email.split("@", 1)[0])


ResolvedUser = Union[DurableUser, SynthesizedUser]


@dataclass(frozen=True)
class CleanupReport:
    otp_codes_removed: int
    sessions_removed: int
    durable_otp_codes_removed: int | None = None
    durable_sessions_removed: int | None = None


def render_otp_email(code: str, expire_minutes: int) -> tuple[str, str]:
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #333;">Chyrris KAI Login</h2>
      <p style="font-size: 16px; color: #666;">Your one-time password is:</p>
      <div style="background: #f5f5f5; padding: 20px; text-align: center; border-radius: 8px; margin: 20px 0;">
        <span style="font-size: 32px; font-weight: bold; letter-spacing: 8px; color: #333;">{code}</span>
      </div>
      <p style="font-size: 14px; color: #999;">This code will expire in {expire_minutes} minutes.</p>
      <p style="font-size: 14px; color: #999;">If you didn't request this code, please ignore this email.</p>
    </div>
    """
    text = (
        f"Your Chyrris KAI login code is: {code}\n"
        f"This code will expire in {expire_minutes} minutes.\n\n"
        "If you didn't request this code, please ignore this email."
    )
    return html, text


class AuthService:
    def __init__(
        self,
        store: DurableStore,
        memory: InMemoryAuthStore,
        *,
        settings: Settings,
        send_email: Callable[..., object] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._memory = memory
        self._settings = settings
        # The default transport reads the same settings as the service.
        self._send_email = send_email or partial(email_service.send_email, settings=settings)
        self._clock = clock

    @property
    def store(self) -> DurableStore:
        return self._store

    @property
    def memory(self) -> InMemoryAuthStore:
        return self._memory

    def _log_store_failure(self, operation: str, subject: str, exc: Exception) -> None:
        if isinstance(exc, StoreUnavailableError):
            logger.debug("[Auth] %s skipped for %s: %s", operation, subject, exc.message)
            return
        logger.warning("[Auth] %s failed for %s; using in-memory store", operation, subject, exc_info=exc)

    def _audit(self, admin_user_id: int, action: str, ip_address: str | None, details: dict | None = None) -> None:
        try:
            with self._store.session() as db:
                log_activity(
                    db,
                    admin_user_id=admin_user_id,
                    action=action,
                    ip_address=ip_address,
                    resource_type="admin_user",
                    resource_id=str(admin_user_id),
                    details=details,
                )
        except STORE_ERRORS as exc:
            self._log_store_failure(f"Audit {action}", f"admin {admin_user_id}", exc)

    def send_otp(self, email: str) -> SendOtpResult:
        now = self._clock()
        expire_minutes = self._settings.otp_expire_minutes
        code = generate_otp_code()
        expires_at = now + timedelta(minutes=expire_minutes)

        self._memory.put_otp(email, code, expires_at)
        try:
            with self._store.session() as db:
                repository.insert_otp_code(db, email=email, code=code, expires_at=expires_at, now=now)
        except STORE_ERRORS as exc:
            self._log_store_failure("Persisting OTP", email, exc)

        if self._settings.otp_log_to_terminal:
            logger.warning("LOGIN OTP | email=%s | otp=%s | expires_in_min=%s", email, code, expire_minutes)

        html, text = render_otp_email(code, expire_minutes)
        try:
            self._send_email(to_email=email, subject=OTP_EMAIL_SUBJECT, html_content=html, text_content=text)
        except EmailDeliveryError as exc:
            logger.error("[Auth] Failed to send OTP email to %s: %s", email, exc)
            if str(exc) == EMAIL_NOT_CONFIGURED_ERROR:
                return SendOtpResult(success=False, error=EMAIL_NOT_CONFIGURED_ERROR)
            return SendOtpResult(success=False, error=f"Failed to send email: {exc}")

        logger.info("[Auth] OTP email sent to %s", email)
        return SendOtpResult(success=True)

    def _verify_code(self, email: str, code: str, now: datetime) -> bool:
        if self._memory.consume_otp(email, code, now=now):
            # Retire the durable copy too, so the code cannot be replayed there.
            try:
                with self._store.session() as db:
                    repository.retire_otp_code(db, email=email, code=code)
            except STORE_ERRORS as exc:
                self._log_store_failure("Retiring OTP", email, exc)
            return True

        try:
            with self._store.session() as db:
                return repository.consume_otp_code(db, email=email, code=code, now=now) is not None
        except STORE_ERRORS as exc:
            self._log_store_failure("Checking OTP", email, exc)
        return False

    def verify_otp(
        self,
        email: str,
        code: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> VerifyOtpResult:
        now = self._clock()
        if not self._verify_code(email, code, now):
            logger.info("[Auth] OTP verification failed for %s", email)
            return VerifyOtpResult(success=False, error=INVALID_CODE_ERROR)

        admin_user_id = SENTINEL_ADMIN_USER_ID
        try:
            with self._store.session() as db:
                admin = repository.record_admin_login(db, email=email, now=now)
                if not admin.is_active:
                    logger.warning("[Auth] Login rejected for disabled admin %s", email)
                    return VerifyOtpResult(success=False, error=DISABLED_ACCOUNT_ERROR)
                admin_user_id = admin.id
        except STORE_ERRORS as exc:
            self._log_store_failure("Resolving admin user", email, exc)

        session_id = generate_session_id()
        expires_at = now + timedelta(days=self._settings.session_expire_days)
        self._memory.put_session(
            session_id,
            SessionEntry(admin_user_id=admin_user_id, email=email, expires_at=expires_at),
        )

        if admin_user_id != SENTINEL_ADMIN_USER_ID:
            try:
                with self._store.session() as db:
                    repository.insert_session(
                        db,
                        session_id=session_id,
                        admin_user_id=admin_user_id,
                        ip_address=ip_address,
                        user_agent=user_agent,
                        expires_at=expires_at,
                        now=now,
                    )
            except STORE_ERRORS as exc:
                self._log_store_failure("Persisting session", email, exc)
            self._audit(admin_user_id, "auth.login", ip_address, {"user_agent": user_agent})

        logger.info("[Auth] Session %s created for %s", _session_hint(session_id), email)
        return VerifyOtpResult(success=True, session_id=session_id)

    def validate_session(self, session_id: str | None) -> ResolvedUser | None:
        if not session_id:
            return None
        now = self._clock()

        entry = self._memory.get_session(session_id, now=now)
        if entry is not None:
            if entry.admin_user_id == SENTINEL_ADMIN_USER_ID:
                return SynthesizedUser.for_session(entry)
            try:
                with self._store.session() as db:
                    record = repository.get_admin_user(db, entry.admin_user_id)
                    user = DurableUser.from_record(record) if record is not None else None
            except STORE_ERRORS as exc:
                self._log_store_failure("Loading admin user", entry.email, exc)
                return SynthesizedUser.for_session(entry)
            if user is None:
                logger.warning(
                    "[Auth] Session %s references missing admin user %s",
                    _session_hint(session_id),
                    entry.admin_user_id,
                )
                return None
            return user if user.is_active else None

        try:
            with self._store.session() as db:
                session_record = repository.get_active_session(db, session_id, now=now)
                if session_record is None:
                    return None
                record = repository.get_admin_user(db, session_record.admin_user_id)
                user = DurableUser.from_record(record) if record is not None else None
        except STORE_ERRORS as exc:
            self._log_store_failure("Loading session", _session_hint(session_id), exc)
            return None

        if user is None or not user.is_active:
            return None
        return user

    def invalidate_session(self, session_id: str, ip_address: str | None = None) -> bool:
        entry = self._memory.drop_session(session_id)

        admin_user_id: int | None = None
        try:
            with self._store.session() as db:
                admin_user_id = repository.delete_session(db, session_id)
        except STORE_ERRORS as exc:
            self._log_store_failure("Deleting session", _session_hint(session_id), exc)

        if admin_user_id is None and entry is not None and entry.admin_user_id != SENTINEL_ADMIN_USER_ID:
            admin_user_id = entry.admin_user_id
        if admin_user_id is not None:
            self._audit(admin_user_id, "auth.logout", ip_address)

        logger.info("[Auth] Session %s invalidated", _session_hint(session_id))
        return True

    def cleanup_expired(self) -> CleanupReport:
        now = self._clock()
        otp_codes_removed, sessions_removed = self._memory.sweep(now=now)

        durable_otps: int | None = None
        durable_sessions: int | None = None
        try:
            with self._store.session() as db:
                durable_otps, durable_sessions = repository.delete_expired(db, now=now)
        except STORE_ERRORS as exc:
            self._log_store_failure("Cleanup", "expired records", exc)

        report = CleanupReport(
            otp_codes_removed=otp_codes_removed,
            sessions_removed=sessions_removed,
            durable_otp_codes_removed=durable_otps,
            durable_sessions_removed=durable_sessions,
        )
        logger.info("[Auth] Cleanup completed: %s", report)
        return report
