from __future__ import annotations

import logging
import time

import requests

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    pass


def _classify_rejection(response: requests.Response) -> str:
    status_code = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = str(body.get("message") or body.get("name") or response.text or "").lower()

    if status_code in (401, 403):
        if "domain" in message or "verify" in message:
            return "Email sender rejected"
        return "Email API authentication failed"
    if status_code == 429 or "rate limit" in message or "quota" in message:
        return "Email sender rate limited"
    if status_code in (400, 422):
        if "from" in message or "sender" in message:
            return "Email sender rejected"
        return "Email recipient rejected"
    return "Unable to deliver email"


def _is_retryable(response: requests.Response) -> bool:
    return response.status_code >= 500


def _build_payload(
    *, from_email: str, to_email: str, subject: str, html_content: str, text_content: str | None
) -> dict:
    payload = {
        "from": from_email,
        "to": [to_email],
        "subject": subject,
        "html": html_content,
    }
    if text_content:
        payload["text"] = text_content
    return payload


def send_email(
    *,
    to_email: str,
    subject: str,
    html_content: str,
    text_content: str | None = None,
    settings: Settings | None = None,
) -> str | None:
    """Send one transactional email through the mail API.

    Returns the provider message id when one is reported. Raises
    `EmailDeliveryError` with a short classified reason on any failure;
    connection errors and 5xx responses are retried with linear backoff.
    """
    if settings is None:
        settings = get_settings()
    if not settings.resend_api_key:
        raise EmailDeliveryError("Email service not configured")

    payload = _build_payload(
        from_email=settings.email_from,
        to_email=to_email,
        subject=subject,
        html_content=html_content,
        text_content=text_content,
    )
    headers = {
        "Authorization": f"Bearer {settings.resend_api_key}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    timeout = max(1, settings.email_timeout_seconds)
    retry_attempts = max(1, settings.email_retry_attempts)
    retry_backoff_seconds = max(0.0, settings.email_retry_backoff_seconds)

    last_error: Exception | None = None
    last_error_message = "Unable to deliver email"

    for attempt in range(1, retry_attempts + 1):
        try:
            response = requests.post(settings.email_api_url, headers=headers, json=payload, timeout=timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            last_error = exc
            last_error_message = "Email connection failed"
        except requests.RequestException as exc:
            last_error = exc
            last_error_message = "Unable to deliver email"
            break
        else:
            if response.status_code < 300:
                try:
                    return response.json().get("id")
                except ValueError:
                    return None
            last_error = EmailDeliveryError(f"HTTP {response.status_code}: {response.text[:200]}")
            last_error_message = _classify_rejection(response)
            if not _is_retryable(response):
                break

        if attempt < retry_attempts:
            logger.warning(
                "Email send to %s failed (%s), retrying (%d/%d)",
                to_email,
                last_error_message,
                attempt,
                retry_attempts,
            )
            if retry_backoff_seconds > 0:
                time.sleep(retry_backoff_seconds * attempt)

    raise EmailDeliveryError(last_error_message) from last_error
