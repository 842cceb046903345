from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.services.auth import AuthService

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "auth_cleanup_expired"


def start_cleanup_scheduler(auth_service: AuthService, *, interval_minutes: int) -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        auth_service.cleanup_expired,
        "interval",
        minutes=max(1, interval_minutes),
        id=CLEANUP_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info("Auth cleanup scheduled every %d minute(s)", max(1, interval_minutes))
    return scheduler


def stop_cleanup_scheduler(scheduler: BackgroundScheduler | None) -> None:
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
