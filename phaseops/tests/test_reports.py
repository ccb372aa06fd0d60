"""Tests for daily report aggregation and persistence."""

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from phaseops.errors import ReportPersistError
from phaseops.models import TaskExecutionResult
from phaseops.reports import (
    DailyReport,
    ReportStore,
    build_daily_report,
    calculate_efficiency,
    format_success_rate,
)

START = datetime(2025, 10, 1, 9, 0, tzinfo=timezone.utc)


def make_result(
    task_id: str = "1.1", status: str = "completed", duration: int = 60
) -> TaskExecutionResult:
    """Create a test TaskExecutionResult."""
    return TaskExecutionResult(
        task_id=task_id,
        name=f"Task {task_id}",
        owner="Aria",
        status=status,  # type: ignore[arg-type]
        message="Task completed successfully" if status == "completed" else "nope",
        started_at=START,
        ended_at=START + timedelta(seconds=duration),
        duration_seconds=duration,
    )


class TestSuccessRate:
    def test_no_tasks_is_literal_zero(self):
        assert format_success_rate(0, 0) == "0"

    def test_one_decimal(self):
        assert format_success_rate(3, 4) == "75.0"
        assert format_success_rate(1, 3) == "33.3"
        assert format_success_rate(3, 3) == "100.0"
        assert format_success_rate(0, 4) == "0.0"

    def test_exact_halves_round_up(self):
        assert format_success_rate(1, 16) == "6.3"
        assert format_success_rate(1, 80) == "1.3"
        assert format_success_rate(3, 16) == "18.8"


class TestEfficiency:
    """Test the blended efficiency score."""

    def test_empty_cycle_is_zero(self):
        assert calculate_efficiency(0, 0, 0) == 0

    def test_zero_average_counts_as_fully_efficient(self):
        # all blocked: completion 0, time efficiency 1
        assert calculate_efficiency(0, 3, 0) == 30

    def test_fast_and_complete_is_100(self):
        assert calculate_efficiency(3, 3, 5) == 100

    def test_slow_tasks_lose_time_efficiency(self):
        # 0.7 * 1 + 0.3 * (300 / 600) = 0.85
        assert calculate_efficiency(2, 2, 600) == 85

    def test_bounds(self):
        for completed, total, avg in [(0, 5, 10_000), (5, 5, 0.001), (1, 7, 300)]:
            assert 0 <= calculate_efficiency(completed, total, avg) <= 100


class TestBuildDailyReport:
    """Test aggregation of cycle results."""

    def test_counts_and_performance(self, plan):
        results = [
            make_result("1.1", "completed", 4),
            make_result("1.2", "failed", 0),
            make_result("1.3", "blocked", 0),
            make_result("1.4", "completed", 6),
        ]

        report = build_daily_report(1, 1, results, plan, date(2025, 10, 1))
        summary = report.summary

        assert (summary.total, summary.completed, summary.failed, summary.blocked) == (4, 2, 1, 1)
        assert summary.completed + summary.failed + summary.blocked == summary.total
        assert summary.success_rate == "50.0"
        assert report.performance.total_time_minutes == 0
        assert report.performance.average_time_seconds == 3
        assert report.attention_count == 2

    def test_next_day_preview(self, plan):
        report = build_daily_report(7, 1, [make_result()], plan, date(2025, 10, 7))

        assert report.next_day.day == 8
        assert report.next_day.week == 2
        assert report.next_day.scheduled_tasks == 3

    def test_next_day_clamped_on_last_day(self, plan):
        report = build_daily_report(18, 3, [], plan, date(2025, 10, 18))

        assert report.next_day.day == 18
        assert report.next_day.scheduled_tasks == 4

    def test_empty_cycle(self, plan):
        report = build_daily_report(1, 1, [], plan, date(2025, 10, 1))

        assert report.summary.total == 0
        assert report.summary.success_rate == "0"
        assert report.performance.efficiency == 0
        assert report.performance.average_time_seconds == 0

    def test_to_dict_key_layout(self, plan):
        report = build_daily_report(1, 1, [make_result()], plan, date(2025, 10, 1))
        data = report.to_dict()

        assert list(data) == ["date", "day", "week", "summary", "performance", "nextDay"]
        assert list(data["summary"]) == ["total", "completed", "failed", "blocked", "successRate"]
        assert list(data["performance"]) == ["totalTime", "averageTime", "efficiency"]
        assert list(data["nextDay"]) == ["day", "week", "scheduledTasks"]
        assert data["date"] == "2025-10-01"


class TestReportStore:
    """Test report persistence."""

    def test_save_and_load(self, tmp_path, plan):
        store = ReportStore(tmp_path / "reports")
        report = build_daily_report(1, 1, [make_result()], plan, date(2025, 10, 1))

        path = store.save(report)

        assert path.name == "daily-report-2025-10-01.json"
        assert store.load("2025-10-01") == report
        assert path.read_text() == report.to_json()
        assert json.loads(path.read_text())["summary"]["successRate"] == "100.0"

    def test_load_missing_returns_none(self, tmp_path):
        assert ReportStore(tmp_path).load("2025-10-01") is None

    def test_same_date_overwrites(self, tmp_path, plan):
        store = ReportStore(tmp_path)
        store.save(build_daily_report(1, 1, [make_result()], plan, date(2025, 10, 1)))
        second = build_daily_report(
            1, 1, [make_result(status="failed", duration=0)], plan, date(2025, 10, 1)
        )

        store.save(second)

        assert len(list(tmp_path.glob("daily-report-*.json"))) == 1
        assert store.load("2025-10-01").summary.failed == 1

    def test_list_reports_most_recent_oldest_first(self, tmp_path, plan):
        store = ReportStore(tmp_path)
        for day in range(1, 6):
            store.save(build_daily_report(day, 1, [], plan, date(2025, 10, day)))

        reports = store.list_reports(limit=3)

        assert [r.date for r in reports] == ["2025-10-03", "2025-10-04", "2025-10-05"]

    def test_list_reports_skips_unreadable(self, tmp_path, plan):
        store = ReportStore(tmp_path)
        store.save(build_daily_report(1, 1, [], plan, date(2025, 10, 1)))
        (tmp_path / "daily-report-2025-10-02.json").write_text("{not json")

        assert [r.date for r in store.list_reports()] == ["2025-10-01"]

    def test_list_reports_without_directory(self, tmp_path):
        assert ReportStore(tmp_path / "nowhere").list_reports() == []

    def test_unwritable_directory_raises(self, tmp_path, plan):
        blocker = tmp_path / "reports"
        blocker.write_text("a file, not a directory")
        store = ReportStore(blocker)

        with pytest.raises(ReportPersistError):
            store.save(build_daily_report(1, 1, [], plan, date(2025, 10, 1)))

    def test_from_dict_round_trip(self, plan):
        report = build_daily_report(2, 1, [make_result(duration=90)], plan, date(2025, 10, 2))
        assert DailyReport.from_dict(json.loads(report.to_json())) == report
