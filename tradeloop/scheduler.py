"""
Periodic session ticks on an APScheduler background scheduler.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List

import pytz
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger


class SessionScheduler:
    """
    One interval job per running session.

    Jobs run with max_instances=1 and coalesce=True, so a slow tick delays
    the next one for that session instead of overlapping it, and missed runs
    collapse into one.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize scheduler.

        Args:
            config: Application configuration (reads the `session` section)
        """
        session_config = config.get('session', {})
        self.timezone = pytz.timezone(session_config.get('timezone', 'UTC'))
        self.max_workers = int(session_config.get('max_workers', 10))

        self.scheduler = BackgroundScheduler(
            timezone=self.timezone,
            executors={'default': {'type': 'threadpool', 'max_workers': self.max_workers}},
            job_defaults={'max_instances': 1, 'coalesce': True, 'misfire_grace_time': 30},
        )

        logger.info(f"SessionScheduler initialized | TZ: {self.timezone}, Workers: {self.max_workers}")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")

    def schedule(
        self,
        job_id: str,
        func: Callable[[], None],
        interval_seconds: float,
        run_immediately: bool = True
    ) -> None:
        """
        Run func every interval_seconds under job_id.

        Args:
            job_id: Unique job id (replaces an existing job with the same id)
            func: Zero-argument callable
            interval_seconds: Period between runs
            run_immediately: Fire the first run now instead of after one period
        """
        kwargs = {}
        if run_immediately:
            kwargs['next_run_time'] = datetime.now(self.timezone)

        self.scheduler.add_job(
            func=func,
            trigger=IntervalTrigger(seconds=interval_seconds, timezone=self.timezone),
            id=job_id,
            name=job_id,
            replace_existing=True,
            **kwargs
        )
        logger.info(f"Scheduled job {job_id} every {interval_seconds}s")

    def cancel(self, job_id: str) -> bool:
        """
        Remove a job so no new run begins. An in-flight run is not interrupted.

        Returns:
            True if the job existed
        """
        try:
            self.scheduler.remove_job(job_id)
            logger.info(f"Job cancelled: {job_id}")
            return True
        except JobLookupError:
            return False

    def pause(self, job_id: str) -> bool:
        try:
            self.scheduler.pause_job(job_id)
            logger.info(f"Job paused: {job_id}")
            return True
        except JobLookupError:
            logger.warning(f"Cannot pause unknown job: {job_id}")
            return False

    def resume(self, job_id: str) -> bool:
        try:
            self.scheduler.resume_job(job_id)
            logger.info(f"Job resumed: {job_id}")
            return True
        except JobLookupError:
            logger.warning(f"Cannot resume unknown job: {job_id}")
            return False

    def has_job(self, job_id: str) -> bool:
        return self.scheduler.get_job(job_id) is not None

    def get_jobs(self) -> List[Dict]:
        """
        Get list of scheduled jobs.

        Returns:
            List of job information dicts
        """
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, 'next_run_time', None)
            jobs.append({
                'id': job.id,
                'name': job.name,
                'next_run': next_run.isoformat() if next_run else None,
                'trigger': str(job.trigger)
            })
        return jobs
