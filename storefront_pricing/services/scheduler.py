"""
Recalculation scheduler.

Runs the pricing pass and the FX refresh on fixed intervals in background
threads. Each job is guarded by a per-name lock: a trigger that arrives
while the job is running is skipped, never queued.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from storefront_pricing.storage.stats_store import StatsStore
from storefront_pricing.utils.logging_config import LogContext

logger = logging.getLogger(__name__)

PRICING_JOB = "pricing"
FX_REFRESH_JOB = "fx_refresh"


class JobNotFoundError(KeyError):
    """Raised when triggering a job name that is not registered."""

    pass


class JobLock:
    """
    Per-job-name re-entrancy guard.

    Process-local. A lease-based implementation with the same acquire and
    release methods can replace it when several instances share a catalog.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._held: set[str] = set()

    def acquire(self, name: str) -> bool:
        """Take the lock for a job; False if it is already held."""
        with self._guard:
            if name in self._held:
                return False
            self._held.add(name)
            return True

    def release(self, name: str) -> None:
        with self._guard:
            self._held.discard(name)

    def is_held(self, name: str) -> bool:
        with self._guard:
            return name in self._held


@dataclass
class JobStatus:
    """Inspectable state of one scheduled job."""

    name: str
    interval_seconds: float
    is_running: bool = False
    run_count: int = 0
    skip_count: int = 0
    failure_count: int = 0
    last_run_at: datetime | None = None
    last_error: str | None = None
    last_duration_ms: int | None = None
    last_result: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "is_running": self.is_running,
            "run_count": self.run_count,
            "skip_count": self.skip_count,
            "failure_count": self.failure_count,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
            "last_duration_ms": self.last_duration_ms,
            "last_result": self.last_result,
        }


@dataclass
class _Job:
    name: str
    func: Callable[[], dict[str, Any] | None]
    status: JobStatus
    thread: threading.Thread | None = field(default=None, repr=False)


def _outcome_counts(result: dict[str, Any] | None) -> tuple[int, int, int, str]:
    """Pull (total, updated, failed, error) out of a job result for the run log."""
    if not result:
        return 0, 0, 0, ""
    if "rates_count" in result:
        errors = result.get("errors") or []
        failed = 0 if result.get("success", True) else 1
        fetched = int(result.get("rates_count", 0))
        return fetched, fetched, failed, "; ".join(errors)
    return (
        int(result.get("total", 0)),
        int(result.get("updated", 0)),
        int(result.get("errors", 0)),
        "",
    )


class RecalculationScheduler:
    """
    Interval scheduler for the pricing and FX refresh jobs.

    Attributes:
        lock: Job lock guarding against overlapping runs.
        stats_store: Optional job run log.
    """

    def __init__(
        self,
        lock: JobLock | None = None,
        stats_store: StatsStore | None = None,
    ) -> None:
        self.lock = lock or JobLock()
        self.stats_store = stats_store
        self._jobs: dict[str, _Job] = {}
        self._status_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._started = False

    def add_job(
        self,
        name: str,
        func: Callable[[], dict[str, Any] | None],
        interval_seconds: float,
    ) -> None:
        """
        Register a job.

        Args:
            name: Unique job name.
            func: Callable run on each tick; its return value is kept as last_result.
            interval_seconds: Seconds between runs.
        """
        if interval_seconds <= 0:
            raise ValueError(f"Invalid interval for job {name}: {interval_seconds}")
        if name in self._jobs:
            raise ValueError(f"Job already registered: {name}")
        self._jobs[name] = _Job(name=name, func=func, status=JobStatus(name, interval_seconds))
        logger.info(f"Registered job {name} every {interval_seconds}s")

    @property
    def job_names(self) -> list[str]:
        return list(self._jobs)

    def trigger(self, name: str) -> bool:
        """
        Run a job now in the calling thread.

        Returns:
            bool: True if the job ran, False if it was skipped because it
            was already running.

        Raises:
            JobNotFoundError: If no job has this name.
        """
        job = self._jobs.get(name)
        if job is None:
            raise JobNotFoundError(name)

        if not self.lock.acquire(name):
            with self._status_lock:
                job.status.skip_count += 1
            logger.warning(f"Job {name} is already running; skipping this trigger")
            return False

        try:
            self._run(job)
        finally:
            self.lock.release(name)
        return True

    def _run(self, job: _Job) -> None:
        started_at = datetime.now(timezone.utc)
        with self._status_lock:
            job.status.is_running = True

        start = time.monotonic()
        result: dict[str, Any] | None = None
        error: str | None = None

        with LogContext(logger, job=job.name):
            logger.info(f"Job {job.name} started")
            try:
                result = job.func()
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
                logger.exception(f"Job {job.name} failed: {error}")

            duration_ms = int((time.monotonic() - start) * 1000)
            if error is None:
                logger.info(f"Job {job.name} finished in {duration_ms}ms: {result}")

        with self._status_lock:
            status = job.status
            status.is_running = False
            status.run_count += 1
            status.last_run_at = started_at
            status.last_duration_ms = duration_ms
            status.last_error = error
            if error is not None:
                status.failure_count += 1
            else:
                status.last_result = result

        if self.stats_store is not None:
            total, updated, failed, result_error = _outcome_counts(result)
            run_failed = error is not None or (result is not None and result.get("success") is False)
            try:
                self.stats_store.record_run(
                    job_name=job.name,
                    status="failed" if run_failed else "success",
                    duration_ms=duration_ms,
                    items_total=total,
                    items_updated=updated,
                    items_failed=failed,
                    error=error or result_error,
                )
            except OSError as e:
                logger.error(f"Could not record run of job {job.name}: {e}")

    def _loop(self, job: _Job, run_immediately: bool) -> None:
        if run_immediately and not self._stop_event.is_set():
            self.trigger(job.name)
        while not self._stop_event.wait(job.status.interval_seconds):
            self.trigger(job.name)

    def start(self, run_immediately: bool = False) -> None:
        """
        Start one daemon thread per job.

        Args:
            run_immediately: Run each job once right away instead of
                waiting a full interval.
        """
        if self._started:
            logger.warning("Scheduler already started")
            return

        self._stop_event.clear()
        for job in self._jobs.values():
            job.thread = threading.Thread(
                target=self._loop,
                args=(job, run_immediately),
                name=f"scheduler-{job.name}",
                daemon=True,
            )
            job.thread.start()
        self._started = True
        logger.info(f"Scheduler started with jobs: {self.job_names}")

    def stop(self, timeout: float | None = 30.0) -> None:
        """Signal all job threads to stop and wait for them."""
        if not self._started:
            return
        self._stop_event.set()
        for job in self._jobs.values():
            if job.thread is not None:
                job.thread.join(timeout)
                if job.thread.is_alive():
                    logger.warning(f"Job {job.name} did not stop within {timeout}s")
                job.thread = None
        self._started = False
        logger.info("Scheduler stopped")

    @property
    def is_started(self) -> bool:
        return self._started

    def status(self) -> dict[str, dict[str, Any]]:
        """Snapshot of every job's state."""
        with self._status_lock:
            return {name: job.status.to_dict() for name, job in self._jobs.items()}

    def job_status(self, name: str) -> JobStatus:
        job = self._jobs.get(name)
        if job is None:
            raise JobNotFoundError(name)
        return job.status


def build_scheduler(
    pricing_service,
    fx_service,
    pricing_interval_seconds: float = 3600,
    fx_refresh_interval_seconds: float = 86400,
    lock: JobLock | None = None,
    stats_store: StatsStore | None = None,
    tracker=None,
) -> RecalculationScheduler:
    """
    Create a scheduler with the hourly pricing job and daily FX refresh job.

    When a tracker is given, the pricing job also drops expired activity.
    """

    def pricing_job() -> dict[str, Any]:
        if tracker is not None:
            tracker.cleanup()
        return pricing_service.run_pricing_pass()

    scheduler = RecalculationScheduler(lock=lock, stats_store=stats_store)
    scheduler.add_job(PRICING_JOB, pricing_job, pricing_interval_seconds)
    scheduler.add_job(FX_REFRESH_JOB, fx_service.refresh_rates, fx_refresh_interval_seconds)
    return scheduler
