"""
APScheduler configuration and job scheduling for dirbackup.

Manages:
- The recurring backup pass (interval trigger)
- Manual pass triggers
- Scheduler status for the dashboard

Jobs live in memory only; the schedule is rebuilt from configuration on
every start.
"""

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.pool import ThreadPoolExecutor

from dirbackup.backup.runner import BackupRunner


logger = logging.getLogger(__name__)

BACKUP_JOB_ID = 'backup_pass'


def _format_run_time(job):
    # Jobs added before start() have no next_run_time yet
    next_run = getattr(job, 'next_run_time', None)
    return next_run.isoformat() if next_run else None


class BackupScheduler:
    """
    Runs backup passes on an interval in a background thread.

    A single worker thread and max_instances=1 keep passes from overlapping;
    the runner's own lock also covers manual triggers.
    """

    def __init__(self, runner: BackupRunner, timezone_name: str = 'UTC'):
        """
        Initialize and configure APScheduler.

        Args:
            runner: BackupRunner whose passes are scheduled
            timezone_name: Scheduler timezone
        """
        self.runner = runner
        self.timezone = timezone_name

        jobstores = {
            'default': MemoryJobStore()
        }

        executors = {
            'default': ThreadPoolExecutor(max_workers=1)
        }

        job_defaults = {
            'coalesce': True,  # Combine multiple pending runs into one
            'max_instances': 1,  # Only one pass at a time
            'misfire_grace_time': 300  # 5 minutes grace period for misfires
        }

        self.scheduler = BackgroundScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone=timezone_name
        )

    def start(self):
        """Schedule the recurring pass and start the background thread."""
        if self.scheduler.running:
            logger.info(f"Scheduler already running (state={self.scheduler.state})")
            return

        self.sync()
        self.scheduler.start()
        logger.info(f"APScheduler started (state={self.scheduler.state}, running={self.scheduler.running})")

        for job in self.scheduler.get_jobs():
            next_run = _format_run_time(job) or 'N/A'
            logger.info(f"  - {job.id}: {job.name} (next run: {next_run})")

    def stop(self, wait: bool = True):
        """
        Stop the scheduler.

        Args:
            wait: Wait for a pass that is already running to finish
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("APScheduler stopped")

    def sync(self):
        """
        Schedule the recurring pass with the configured interval.

        Call after the interval changes; the next pass is counted from now.
        """
        minutes = self.runner.config.interval_minutes

        self.scheduler.add_job(
            func=self._run_pass,
            trigger=IntervalTrigger(minutes=minutes, timezone=self.timezone),
            id=BACKUP_JOB_ID,
            name=f"Backup pass every {minutes} minutes",
            replace_existing=True
        )

        logger.info(f"Scheduled backup pass every {minutes} minutes")

    def _run_pass(self):
        """Run one pass in scheduler context; failures are logged, never raised."""
        try:
            result = self.runner.run_one_pass()
            logger.info(f"Scheduled backup pass {result.name} completed with status: {result.status}")
        except Exception:
            logger.exception("Scheduled backup pass failed")

    def trigger_now(self) -> str:
        """
        Queue a one-off pass that starts immediately.

        Returns:
            ID of the queued job

        Raises:
            RuntimeError: If the scheduler is not running
        """
        if not self.scheduler.running:
            raise RuntimeError("Scheduler not running")

        now = datetime.now(timezone.utc)
        job_id = f"manual_{int(now.timestamp() * 1000)}"

        # 1 second delay so the request returns before the pass starts
        self.scheduler.add_job(
            func=self._run_pass,
            trigger=DateTrigger(run_date=now + timedelta(seconds=1)),
            id=job_id,
            name="Manual backup pass",
            replace_existing=False
        )

        logger.info(f"Manually triggered backup pass: {job_id}")
        return job_id

    def get_scheduled_jobs(self) -> list:
        """
        Get list of all scheduled jobs.

        Returns:
            List of dicts with job information
        """
        jobs = []

        for job in self.scheduler.get_jobs():
            jobs.append({
                'id': job.id,
                'name': job.name,
                'next_run': _format_run_time(job),
                'trigger': str(job.trigger)
            })

        return jobs

    def next_run_time(self):
        job = self.scheduler.get_job(BACKUP_JOB_ID)
        if job is None:
            return None
        return _format_run_time(job)

    def is_running(self) -> bool:
        return bool(self.scheduler.running)

    def get_diagnostics(self) -> dict:
        """
        Get detailed scheduler diagnostics for troubleshooting.

        Returns:
            Dict with scheduler state, jobs and pass activity
        """
        try:
            return {
                'running': self.is_running(),
                'state': str(self.scheduler.state),
                'timezone': self.timezone,
                'pass_in_progress': self.runner.pass_in_progress,
                'jobs': self.get_scheduled_jobs()
            }
        except Exception as e:
            logger.exception("Failed to collect scheduler diagnostics")
            return {
                'running': False,
                'state': 'ERROR',
                'error': str(e)
            }
