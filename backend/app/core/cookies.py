from __future__ import annotations

from typing import Any

from fastapi import Request, Response

from app.core.config import Settings


def _is_secure_request(request: Request) -> bool:
    if request.url.scheme == "https":
        return True
    forwarded_proto = request.headers.get("x-forwarded-proto", "")
    return any(proto.strip().lower() == "https" for proto in forwarded_proto.split(","))


def session_cookie_options(request: Request, settings: Settings) -> dict[str, Any]:
    secure = settings.is_production or _is_secure_request(request)
    return {
        "httponly": True,
        "path": "/",
        "secure": secure,
        # Browsers reject SameSite=None without Secure.
        "samesite": "none" if secure else "lax",
    }


def set_session_cookie(response: Response, request: Request, settings: Settings, session_id: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session_id,
        max_age=settings.session_max_age_seconds,
        **session_cookie_options(request, settings),
    )


def clear_session_cookie(response: Response, request: Request, settings: Settings) -> None:
    response.delete_cookie(key=settings.session_cookie_name, **session_cookie_options(request, settings))
