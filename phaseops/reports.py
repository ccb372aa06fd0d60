"""Daily report aggregation and persistence.

Turns the ordered results of a daily cycle into a DailyReport with summary
counts, performance metrics and a preview of the next day, and stores one
JSON document per calendar date.
"""

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any

from phaseops.config import HORIZON_DAYS
from phaseops.errors import ReportPersistError
from phaseops.models import TaskExecutionResult
from phaseops.phase_calendar import next_day, round_half_up, week_for_day
from phaseops.plan import PhasePlan

logger = logging.getLogger(__name__)

# Expected average task duration used for the time-efficiency ratio
EXPECTED_TASK_SECONDS = 300.0
COMPLETION_WEIGHT = 0.7
TIME_WEIGHT = 0.3

REPORT_PREFIX = "daily-report-"


@dataclass(frozen=True)
class ReportSummary:
    total: int
    completed: int
    failed: int
    blocked: int
    success_rate: str


@dataclass(frozen=True)
class ReportPerformance:
    total_time_minutes: int
    average_time_seconds: int
    efficiency: int


@dataclass(frozen=True)
class NextDayPreview:
    day: int
    week: int
    scheduled_tasks: int


@dataclass(frozen=True)
class DailyReport:
    """Aggregated outcome of one daily cycle.

    Invariant: summary.completed + summary.failed + summary.blocked == summary.total
    """

    date: str
    day: int
    week: int
    summary: ReportSummary
    performance: ReportPerformance
    next_day: NextDayPreview

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the report file's key names and order."""
        return {
            "date": self.date,
            "day": self.day,
            "week": self.week,
            "summary": {
                "total": self.summary.total,
                "completed": self.summary.completed,
                "failed": self.summary.failed,
                "blocked": self.summary.blocked,
                "successRate": self.summary.success_rate,
            },
            "performance": {
                "totalTime": self.performance.total_time_minutes,
                "averageTime": self.performance.average_time_seconds,
                "efficiency": self.performance.efficiency,
            },
            "nextDay": {
                "day": self.next_day.day,
                "week": self.next_day.week,
                "scheduledTasks": self.next_day.scheduled_tasks,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailyReport":
        summary = data["summary"]
        performance = data["performance"]
        preview = data["nextDay"]
        return cls(
            date=data["date"],
            day=int(data["day"]),
            week=int(data["week"]),
            summary=ReportSummary(
                total=int(summary["total"]),
                completed=int(summary["completed"]),
                failed=int(summary["failed"]),
                blocked=int(summary["blocked"]),
                success_rate=str(summary["successRate"]),
            ),
            performance=ReportPerformance(
                total_time_minutes=int(performance["totalTime"]),
                average_time_seconds=int(performance["averageTime"]),
                efficiency=int(performance["efficiency"]),
            ),
            next_day=NextDayPreview(
                day=int(preview["day"]),
                week=int(preview["week"]),
                scheduled_tasks=int(preview["scheduledTasks"]),
            ),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @property
    def attention_count(self) -> int:
        """Number of tasks that failed or were blocked."""
        return self.summary.failed + self.summary.blocked


def format_success_rate(completed: int, total: int) -> str:
    """Percentage with one decimal, or the literal "0" when nothing ran.

    Exact halves round up (1 of 16 gives "6.3").
    """
    if total == 0:
        return "0"
    rate = Decimal(completed / total * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return str(rate)


def calculate_efficiency(
    completed: int,
    total: int,
    average_seconds: float,
    expected_seconds: float = EXPECTED_TASK_SECONDS,
) -> int:
    """Blend completion rate and time performance into a 0-100 score.

    ``time_efficiency = min(expected / average, 1)``; an average of zero
    counts as fully efficient. An empty cycle scores 0.
    """
    if total == 0:
        return 0

    completion_rate = completed / total
    if average_seconds <= 0:
        time_efficiency = 1.0
    else:
        time_efficiency = min(expected_seconds / average_seconds, 1.0)

    score = round_half_up((completion_rate * COMPLETION_WEIGHT + time_efficiency * TIME_WEIGHT) * 100)
    return min(max(score, 0), 100)


def build_daily_report(
    day: int,
    week: int,
    results: Sequence[TaskExecutionResult],
    plan: PhasePlan,
    report_date: date,
    horizon: int = HORIZON_DAYS,
    expected_seconds: float = EXPECTED_TASK_SECONDS,
) -> DailyReport:
    """Aggregate cycle results into a DailyReport.

    Args:
        day: Phase day the cycle ran for
        week: Week of that day
        results: Ordered task results of the cycle
        plan: Plan used to preview the next day's schedule
        report_date: Calendar date the report is keyed by
        horizon: Phase length in days
        expected_seconds: Expected average task duration

    Returns:
        DailyReport for the cycle
    """
    total = len(results)
    completed = sum(1 for r in results if r.status == "completed")
    failed = sum(1 for r in results if r.status == "failed")
    blocked = sum(1 for r in results if r.status == "blocked")

    total_duration = sum(r.duration_seconds for r in results)
    average_duration = total_duration / total if total else 0.0

    upcoming = next_day(day, horizon)

    return DailyReport(
        date=report_date.isoformat(),
        day=day,
        week=week,
        summary=ReportSummary(
            total=total,
            completed=completed,
            failed=failed,
            blocked=blocked,
            success_rate=format_success_rate(completed, total),
        ),
        performance=ReportPerformance(
            total_time_minutes=round_half_up(total_duration / 60),
            average_time_seconds=round_half_up(average_duration),
            efficiency=calculate_efficiency(
                completed, total, average_duration, expected_seconds
            ),
        ),
        next_day=NextDayPreview(
            day=upcoming,
            week=week_for_day(upcoming),
            scheduled_tasks=len(plan.tasks_for_day(upcoming)),
        ),
    )


class ReportStore:
    """Stores daily reports as ``daily-report-YYYY-MM-DD.json`` files.

    Writing a report for a date that already has one overwrites it.
    """

    def __init__(self, reports_dir: Path) -> None:
        self.reports_dir = Path(reports_dir)

    def path_for(self, report_date: str) -> Path:
        return self.reports_dir / f"{REPORT_PREFIX}{report_date}.json"

    def save(self, report: DailyReport) -> Path:
        """Write a report to disk.

        Raises:
            ReportPersistError: If the directory or file cannot be written
        """
        path = self.path_for(report.date)
        try:
            self.reports_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(report.to_json())
        except OSError as e:
            raise ReportPersistError(
                f"Failed to write daily report {path}: {e}", {"path": str(path)}
            ) from e

        logger.info(f"Daily report saved to {path}")
        return path

    def load(self, report_date: str) -> DailyReport | None:
        """Load the report for a date, or None if there is none."""
        path = self.path_for(report_date)
        if not path.exists():
            return None
        return DailyReport.from_dict(json.loads(path.read_text()))

    def list_reports(self, limit: int = 30) -> list[DailyReport]:
        """Return up to ``limit`` most recent reports, oldest first.

        Unreadable files are logged and skipped.
        """
        if not self.reports_dir.exists():
            return []

        paths = sorted(self.reports_dir.glob(f"{REPORT_PREFIX}*.json"))[-limit:]
        reports = []
        for path in paths:
            try:
                reports.append(DailyReport.from_dict(json.loads(path.read_text())))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.error(f"Failed to read report {path.name}: {e}")
        return reports
