from datetime import timedelta

from app.services.scheduler import CLEANUP_JOB_ID, start_cleanup_scheduler, stop_cleanup_scheduler


def test_cleanup_job_runs_hourly(auth_service):
    scheduler = start_cleanup_scheduler(auth_service, interval_minutes=60)
    try:
        job = scheduler.get_job(CLEANUP_JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(minutes=60)
        assert job.func == auth_service.cleanup_expired
    finally:
        stop_cleanup_scheduler(scheduler)
    assert scheduler.running is False


def test_stop_cleanup_scheduler_accepts_none():
    stop_cleanup_scheduler(None)
