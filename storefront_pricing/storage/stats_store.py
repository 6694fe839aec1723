"""
Job run statistics storage module.

Tracks scheduler job runs in a CSV file and provides summary statistics.
"""

import csv
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_JOB_RUNS_PATH = "data/cache/job_runs.csv"

COLUMNS = [
    "date",
    "timestamp",
    "job_name",
    "status",
    "duration_ms",
    "items_total",
    "items_updated",
    "items_failed",
    "error",
]


@dataclass
class JobRun:
    """Record of a single scheduler job run."""

    date: str
    timestamp: str
    job_name: str
    status: str
    duration_ms: int
    items_total: int = 0
    items_updated: int = 0
    items_failed: int = 0
    error: str = ""


@dataclass
class JobSummary:
    """Aggregated statistics for one job."""

    job_name: str
    runs_count: int = 0
    failed_count: int = 0
    today_runs: int = 0
    week_items_updated: int = 0
    avg_duration_ms: float = 0.0
    last_run: str | None = None
    last_status: str | None = None


class StatsStore:
    """Manages storage and retrieval of job run statistics."""

    def __init__(self, stats_path: str | Path | None = None) -> None:
        """Initialize the stats store."""
        self.stats_path = Path(stats_path or DEFAULT_JOB_RUNS_PATH)
        self._lock = threading.Lock()
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Create the stats file with headers if it doesn't exist."""
        self.stats_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.stats_path.exists():
            with open(self.stats_path, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(COLUMNS)
            logger.info(f"Created job runs file: {self.stats_path}")

    def record_run(
        self,
        job_name: str,
        status: str,
        duration_ms: int,
        items_total: int = 0,
        items_updated: int = 0,
        items_failed: int = 0,
        error: str = "",
    ) -> JobRun:
        """Record a job run."""
        now = datetime.now()
        run = JobRun(
            date=now.strftime("%Y-%m-%d"),
            timestamp=now.strftime("%Y-%m-%d %H:%M:%S"),
            job_name=job_name,
            status=status,
            duration_ms=int(duration_ms),
            items_total=int(items_total),
            items_updated=int(items_updated),
            items_failed=int(items_failed),
            error=(error or "")[:500],
        )

        with self._lock:
            with open(self.stats_path, "a", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(
                    [
                        run.date,
                        run.timestamp,
                        run.job_name,
                        run.status,
                        run.duration_ms,
                        run.items_total,
                        run.items_updated,
                        run.items_failed,
                        run.error,
                    ]
                )

        logger.debug(f"Recorded job run: {job_name} {status} in {duration_ms}ms")
        return run

    def get_all_runs(self, job_name: str | None = None) -> list[JobRun]:
        """Get all recorded runs, optionally for one job."""
        runs: list[JobRun] = []

        if not self.stats_path.exists():
            return runs

        with self._lock:
            with open(self.stats_path, newline="", encoding="utf-8") as f:
                rows = list(csv.DictReader(f))

        for row in rows:
            try:
                run = JobRun(
                    date=row["date"],
                    timestamp=row["timestamp"],
                    job_name=row["job_name"],
                    status=row["status"],
                    duration_ms=int(row["duration_ms"]),
                    items_total=int(row.get("items_total") or 0),
                    items_updated=int(row.get("items_updated") or 0),
                    items_failed=int(row.get("items_failed") or 0),
                    error=row.get("error") or "",
                )
            except (ValueError, KeyError) as e:
                logger.warning(f"Invalid job run row: {row}, error: {e}")
                continue
            if job_name is None or run.job_name == job_name:
                runs.append(run)

        return runs

    def get_recent_runs(self, limit: int = 20, job_name: str | None = None) -> list[JobRun]:
        """Most recent runs first."""
        runs = self.get_all_runs(job_name)
        runs.sort(key=lambda r: r.timestamp, reverse=True)
        return runs[:limit]

    def get_job_summary(self, job_name: str) -> JobSummary:
        """Get aggregated stats for one job."""
        runs = self.get_all_runs(job_name)
        summary = JobSummary(job_name=job_name)
        if not runs:
            return summary

        today = date.today().strftime("%Y-%m-%d")
        week_ago = (date.today() - timedelta(days=7)).strftime("%Y-%m-%d")

        summary.runs_count = len(runs)
        summary.failed_count = sum(1 for r in runs if r.status == "failed")
        summary.today_runs = sum(1 for r in runs if r.date == today)
        summary.week_items_updated = sum(r.items_updated for r in runs if r.date >= week_ago)
        summary.avg_duration_ms = round(sum(r.duration_ms for r in runs) / len(runs), 1)

        last = max(runs, key=lambda r: r.timestamp)
        summary.last_run = last.timestamp
        summary.last_status = last.status
        return summary
