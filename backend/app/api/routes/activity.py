from fastapi import APIRouter, Depends, Query

from app.api.deps import get_auth_service, require_roles
from app.core.exceptions import StoreUnavailableError
from app.db.store import STORE_ERRORS
from app.models.admin_user import AdminRole
from app.schemas.activity import ActivityLogOut
from app.services.audit import list_recent_activity
from app.services.auth import AuthService, ResolvedUser

router = APIRouter()


@router.get("/activity/logs", response_model=list[ActivityLogOut])
def list_activity_logs(
    limit: int = Query(default=100, ge=1, le=500),
    current_admin: ResolvedUser = Depends(require_roles(AdminRole.super_admin, AdminRole.admin)),
    auth_service: AuthService = Depends(get_auth_service),
) -> list[ActivityLogOut]:
    try:
        with auth_service.store.session() as db:
            records = list_recent_activity(db, limit=limit)
            return [ActivityLogOut.model_validate(record) for record in records]
    except STORE_ERRORS as exc:
        # The audit trail only lives in the durable store.
        raise StoreUnavailableError("Activity log unavailable") from exc
