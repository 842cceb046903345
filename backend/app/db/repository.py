"""Record-level operations on the durable auth tables.

Each function takes an open ORM session and commits its own unit of work.
Store errors are left to propagate; callers decide how to fall back.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.admin_session import AdminSession
from app.models.admin_user import AdminRole, AdminUser
from app.models.otp_code import OtpCode


def insert_otp_code(db: Session, *, email: str, code: str, expires_at: datetime, now: datetime) -> OtpCode:
    # A new send retires every older pending code for the address.
    db.execute(
        update(OtpCode)
        .where(OtpCode.email == email, OtpCode.used.is_(False))
        .values(used=True)
    )
    record = OtpCode(email=email, code=code, expires_at=expires_at, used=False, created_at=now)
    db.add(record)
    db.commit()
    return record


def consume_otp_code(db: Session, *, email: str, code: str, now: datetime) -> OtpCode | None:
    record = db.execute(
        select(OtpCode)
        .where(
            OtpCode.email == email,
            OtpCode.code == code,
            OtpCode.used.is_(False),
            OtpCode.expires_at > now,
        )
        .order_by(OtpCode.created_at.desc(), OtpCode.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    if record is None:
        return None

    # Conditional update so two concurrent verifications cannot both win.
    result = db.execute(
        update(OtpCode).where(OtpCode.id == record.id, OtpCode.used.is_(False)).values(used=True)
    )
    db.commit()
    if result.rowcount != 1:
        return None
    return record


def retire_otp_code(db: Session, *, email: str, code: str) -> int:
    result = db.execute(
        update(OtpCode)
        .where(OtpCode.email == email, OtpCode.code == code, OtpCode.used.is_(False))
        .values(used=True)
    )
    db.commit()
    return result.rowcount or 0


def get_admin_user_by_email(db: Session, email: str) -> AdminUser | None:
    return db.execute(select(AdminUser).where(AdminUser.email == email)).scalar_one_or_none()


def get_admin_user(db: Session, admin_user_id: int) -> AdminUser | None:
    return db.get(AdminUser, admin_user_id)


def record_admin_login(db: Session, *, email: str, now: datetime) -> AdminUser:
    """Return the admin for `email`, creating it on first login.

    Active admins get `last_login_at` refreshed; disabled admins are returned
    untouched so the caller can reject them.
    """
    user = get_admin_user_by_email(db, email)
    if user is None:
        user = AdminUser(email=email, role=AdminRole.admin, is_active=True, last_login_at=now)
        db.add(user)
        try:
            db.commit()
            return user
        except IntegrityError:
            # Lost a race with a concurrent first login for the same address.
            db.rollback()
            user = get_admin_user_by_email(db, email)
            if user is None:
                raise

    if user.is_active:
        user.last_login_at = now
        db.commit()
    return user


def insert_session(
    db: Session,
    *,
    session_id: str,
    admin_user_id: int,
    ip_address: str | None,
    user_agent: str | None,
    expires_at: datetime,
    now: datetime,
) -> AdminSession:
    record = AdminSession(
        id=session_id,
        admin_user_id=admin_user_id,
        ip_address=ip_address[:45] if ip_address else None,
        user_agent=user_agent,
        expires_at=expires_at,
        created_at=now,
    )
    db.add(record)
    db.commit()
    return record


def get_active_session(db: Session, session_id: str, *, now: datetime) -> AdminSession | None:
    return db.execute(
        select(AdminSession).where(AdminSession.id == session_id, AdminSession.expires_at > now).limit(1)
    ).scalar_one_or_none()


def delete_session(db: Session, session_id: str) -> int | None:
    """Delete a session and return the admin id it belonged to, if any."""
    record = db.get(AdminSession, session_id)
    if record is None:
        return None
    admin_user_id = record.admin_user_id
    db.delete(record)
    db.commit()
    return admin_user_id


def delete_expired(db: Session, *, now: datetime) -> tuple[int, int]:
    otp_result = db.execute(delete(OtpCode).where(OtpCode.expires_at < now))
    session_result = db.execute(delete(AdminSession).where(AdminSession.expires_at < now))
    db.commit()
    return otp_result.rowcount or 0, session_result.rowcount or 0
