"""
Background Job Scheduler - Runs periodic tasks for the sync loop.

This service manages background jobs that:
- Poll the collection store for writes made by other processes
- Refresh crew notification feeds on a fixed interval
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Callable

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 1


class BackgroundScheduler:
    """Simple background scheduler for running periodic tasks."""

    def __init__(self, tick_seconds: float = DEFAULT_TICK_SECONDS):
        self.jobs: Dict[str, Dict] = {}
        self.running = False
        self.tick_seconds = tick_seconds
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

    def add_job(self, job_id: str, func: Callable, interval_seconds: float,
                run_immediately: bool = False, kwargs: Dict = None):
        """
        Add a job to the scheduler.

        Args:
            job_id: Unique identifier for the job
            func: Function to call
            interval_seconds: How often to run (in seconds)
            run_immediately: Whether to run once immediately
            kwargs: Keyword arguments to pass to the function
        """
        with self._lock:
            self.jobs[job_id] = {
                'func': func,
                'interval': interval_seconds,
                'kwargs': kwargs or {},
                'last_run': None,
                'next_run': datetime.utcnow() if run_immediately else datetime.utcnow() + timedelta(seconds=interval_seconds),
                'run_count': 0,
                'last_error': None,
                'enabled': True
            }
            logger.info(f"Added job '{job_id}' with interval {interval_seconds}s")

    def remove_job(self, job_id: str):
        """Remove a job from the scheduler."""
        with self._lock:
            if job_id in self.jobs:
                del self.jobs[job_id]
                logger.info(f"Removed job '{job_id}'")

    def enable_job(self, job_id: str):
        with self._lock:
            if job_id in self.jobs:
                self.jobs[job_id]['enabled'] = True

    def disable_job(self, job_id: str):
        """Disable a job without removing it."""
        with self._lock:
            if job_id in self.jobs:
                self.jobs[job_id]['enabled'] = False

    def get_job_status(self) -> Dict[str, Any]:
        """Get status of all jobs."""
        with self._lock:
            return {
                job_id: {
                    'interval': job['interval'],
                    'last_run': job['last_run'].isoformat() if job['last_run'] else None,
                    'next_run': job['next_run'].isoformat() if job['next_run'] else None,
                    'run_count': job['run_count'],
                    'last_error': job['last_error'],
                    'enabled': job['enabled']
                }
                for job_id, job in self.jobs.items()
            }

    def start(self):
        """Start the scheduler in a background thread."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        self.running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        logger.info("Background scheduler started")

    def stop(self):
        self.running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
        logger.info("Background scheduler stopped")

    def run_pending(self, now: Optional[datetime] = None) -> int:
        """Run every enabled job that is due; returns how many ran"""
        now = now or datetime.utcnow()

        with self._lock:
            jobs_to_run = [
                (job_id, job) for job_id, job in self.jobs.items()
                if job['enabled'] and job['next_run'] and now >= job['next_run']
            ]

        for job_id, job in jobs_to_run:
            try:
                job['func'](**job['kwargs'])

                with self._lock:
                    job['last_run'] = now
                    job['next_run'] = now + timedelta(seconds=job['interval'])
                    job['run_count'] += 1
                    job['last_error'] = None

            except Exception as e:
                logger.error(f"Job '{job_id}' failed: {e}", exc_info=True)
                with self._lock:
                    job['last_error'] = str(e)
                    job['next_run'] = now + timedelta(seconds=job['interval'])

        return len(jobs_to_run)

    def _run_loop(self):
        """Main scheduler loop."""
        while self.running and not self._stop_event.is_set():
            self.run_pending()
            self._stop_event.wait(timeout=self.tick_seconds)

    def run_job_now(self, job_id: str) -> bool:
        """Manually trigger a job to run immediately."""
        with self._lock:
            if job_id not in self.jobs:
                return False
            job = self.jobs[job_id]

        try:
            job['func'](**job['kwargs'])
            with self._lock:
                job['last_run'] = datetime.utcnow()
                job['run_count'] += 1
                job['last_error'] = None
            return True
        except Exception as e:
            logger.error(f"Manual job run '{job_id}' failed: {e}")
            with self._lock:
                job['last_error'] = str(e)
            return False


# =============================================================================
# SCHEDULED JOBS
# =============================================================================

def poll_store_job(watcher):
    """Announce collections written by other processes."""
    changed = watcher.poll()
    if changed:
        logger.debug(f"Store poll picked up changes in: {', '.join(changed)}")


def poll_crew_feeds_job(feeds):
    """Fixed-interval fallback for crew notification feeds."""
    refreshed = feeds.poll_all()
    if refreshed:
        logger.debug(f"Refreshed {refreshed} crew notification feed(s)")


def init_scheduler(watcher, feeds, poll_interval: float = 2, scheduler: Optional[BackgroundScheduler] = None):
    """Initialize the scheduler with the sync jobs and start it."""
    scheduler = scheduler or BackgroundScheduler()

    scheduler.add_job(
        'poll_store',
        poll_store_job,
        interval_seconds=poll_interval,
        run_immediately=True,
        kwargs={'watcher': watcher}
    )

    scheduler.add_job(
        'poll_crew_feeds',
        poll_crew_feeds_job,
        interval_seconds=poll_interval,
        run_immediately=True,
        kwargs={'feeds': feeds}
    )

    scheduler.start()
    logger.info("Scheduler initialized with sync jobs")

    return scheduler
