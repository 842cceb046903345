from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.activity_log import AdminActivityLog


def log_activity(
    db: Session,
    *,
    admin_user_id: int | None,
    action: str,
    ip_address: str | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    details: dict | None = None,
) -> None:
    record = AdminActivityLog(
        admin_user_id=admin_user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details or {},
        ip_address=ip_address[:45] if ip_address else None,
    )
    db.add(record)
    db.commit()


def list_recent_activity(db: Session, *, limit: int = 500) -> list[AdminActivityLog]:
    query = (
        select(AdminActivityLog)
        .order_by(AdminActivityLog.created_at.desc(), AdminActivityLog.id.desc())
        .limit(limit)
    )
    return list(db.execute(query).scalars())
