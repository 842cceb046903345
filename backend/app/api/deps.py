from collections.abc import Callable, Iterable

from fastapi import Depends, HTTPException, Request, status

from app.core.config import Settings, get_settings
from app.models.admin_user import AdminRole
from app.services.auth import AuthService, ResolvedUser


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_session_id(request: Request, settings: Settings = Depends(get_settings)) -> str | None:
    return request.cookies.get(settings.session_cookie_name) or None


def get_current_admin(
    session_id: str | None = Depends(get_session_id),
    auth_service: AuthService = Depends(get_auth_service),
) -> ResolvedUser | None:
    # FastAPI caches dependencies per request, so the session is resolved once.
    if session_id is None:
        return None
    return auth_service.validate_session(session_id)


def require_admin(current_admin: ResolvedUser | None = Depends(get_current_admin)) -> ResolvedUser:
    # Disabled or deleted admins resolve to None, so they land here too.
    if current_admin is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return current_admin


def require_roles(*roles: AdminRole) -> Callable[[ResolvedUser], ResolvedUser]:
    allowed_roles: Iterable[AdminRole] = set(roles)

    def role_checker(current_admin: ResolvedUser = Depends(require_admin)) -> ResolvedUser:
        if current_admin.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_admin

    return role_checker


def request_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    if request.client and request.client.host:
        return request.client.host
    return None
