from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from threading import Lock
import secrets


@dataclass(frozen=True)
class OtpEntry:
    code: str
    expires_at: datetime


@dataclass(frozen=True)
class SessionEntry:
    admin_user_id: int
    email: str
    expires_at: datetime


class InMemoryAuthStore:
    """Process-local OTP and session maps.

    Entries are never persisted and are not shared between processes. Expiry
    is checked at read time; expired entries linger until `sweep` runs. Each
    public method is a single locked block, so check-then-delete is atomic
    with respect to concurrent request handlers.
    """

    def __init__(self) -> None:
        self._otps: dict[str, OtpEntry] = {}
        self._sessions: dict[str, SessionEntry] = {}
        self._lock = Lock()

    def put_otp(self, email: str, code: str, expires_at: datetime) -> None:
        with self._lock:
            self._otps[email] = OtpEntry(code=code, expires_at=expires_at)

    def consume_otp(self, email: str, code: str, *, now: datetime) -> bool:
        with self._lock:
            entry = self._otps.get(email)
            if entry is None or entry.expires_at <= now:
                return False
            if not secrets.compare_digest(entry.code.encode("utf-8"), code.encode("utf-8")):
                return False
            del self._otps[email]
            return True

    def put_session(self, session_id: str, entry: SessionEntry) -> None:
        with self._lock:
            self._sessions[session_id] = entry

    def get_session(self, session_id: str, *, now: datetime) -> SessionEntry | None:
        with self._lock:
            entry = self._sessions.get(session_id)
        if entry is None or entry.expires_at <= now:
            return None
        return entry

    def drop_session(self, session_id: str) -> SessionEntry | None:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def sweep(self, *, now: datetime) -> tuple[int, int]:
        with self._lock:
            expired_otps = [email for email, entry in self._otps.items() if entry.expires_at <= now]
            for email in expired_otps:
                del self._otps[email]
            expired_sessions = [key for key, entry in self._sessions.items() if entry.expires_at <= now]
            for key in expired_sessions:
                del self._sessions[key]
        return len(expired_otps), len(expired_sessions)

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {"otp_codes": len(self._otps), "sessions": len(self._sessions)}

    def clear(self) -> None:
        with self._lock:
            self._otps.clear()
            self._sessions.clear()
