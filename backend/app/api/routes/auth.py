from fastapi import APIRouter, Depends, Request, Response

from app.api.deps import get_auth_service, get_current_admin, get_session_id, request_ip
from app.core.config import Settings, get_settings
from app.core.cookies import clear_session_cookie, set_session_cookie
from app.schemas.auth import (
    AdminUserOut,
    LogoutResponse,
    SendOtpRequest,
    SendOtpResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from app.services.auth import AuthService, ResolvedUser

router = APIRouter()


@router.post("/otp/send", response_model=SendOtpResponse, response_model_exclude_none=True)
def send_otp(payload: SendOtpRequest, auth_service: AuthService = Depends(get_auth_service)) -> SendOtpResponse:
    result = auth_service.send_otp(payload.email)
    return SendOtpResponse(success=result.success, error=result.error)


@router.post("/otp/verify", response_model=VerifyOtpResponse, response_model_exclude_none=True)
def verify_otp(
    payload: VerifyOtpRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> VerifyOtpResponse:
    result = auth_service.verify_otp(
        payload.email,
        payload.code,
        ip_address=request_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    if result.success and result.session_id:
        set_session_cookie(response, request, settings, result.session_id)
    return VerifyOtpResponse(success=result.success, session_id=result.session_id, error=result.error)


@router.get("/me", response_model=AdminUserOut | None)
def me(current_admin: ResolvedUser | None = Depends(get_current_admin)) -> AdminUserOut | None:
    if current_admin is None:
        return None
    return AdminUserOut.model_validate(current_admin)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    request: Request,
    response: Response,
    session_id: str | None = Depends(get_session_id),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> LogoutResponse:
    if session_id:
        auth_service.invalidate_session(session_id, ip_address=request_ip(request))
    clear_session_cookie(response, request, settings)
    return LogoutResponse()
