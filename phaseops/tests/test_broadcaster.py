"""Tests for the status broadcaster.

Tests cover:
- Snapshot shape and phase/task fields
- Bounded alert history (newest first)
- Observer connect, broadcast and pruning of failed observers
- Scheduled job cadence on a virtual clock
- Metrics and team status
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

from phaseops.broadcaster import MAX_ALERTS, Health, StatusBroadcaster
from phaseops.clock import JobScheduler, VirtualClock
from phaseops.outcomes import ScriptedOutcomeSource
from phaseops.reports import DailyReport, ReportStore, build_daily_report
from phaseops.team import TeamConfig


class FakeObserver:
    """Observer that records every message it receives."""

    def __init__(self, fail: bool = False) -> None:
        self.messages: list[dict] = []
        self.fail = fail

    async def send_json(self, data) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.messages.append(data)


TEAM = TeamConfig(
    members={
        "aria": {"name": "Aria", "role": "Memory Architect", "assignedTasks": ["1.1", "2.3"]},
        "lex": {"name": "Lex", "role": "Safety Lead", "assignedTasks": ["1.3"]},
    },
    task_assignments={"1.1": "aria", "2.3": "aria", "1.3": "lex"},
)


@pytest.fixture
def store(config) -> ReportStore:
    return ReportStore(config.reports_dir)


@pytest.fixture
def make_broadcaster(config, plan, clock, store):
    def _make(outcomes=None, team=TEAM, clock=clock) -> StatusBroadcaster:
        return StatusBroadcaster(
            config=config,
            plan=plan,
            clock=clock,
            outcomes=outcomes or ScriptedOutcomeSource(default=0.5),
            report_store=store,
            team=team,
        )

    return _make


class TestSystemStatus:
    def test_initial_snapshot(self, make_broadcaster):
        status = make_broadcaster().get_system_status()

        assert status["phase"] == {
            "currentDay": 1,
            "totalDays": 18,
            "daysRemaining": 17,
            "progress": 6,
            "week": 1,
        }
        assert status["tasks"] == {
            "today": 3,
            "completed": 0,
            "total": 28,
            "completionRate": 0,
        }
        assert status["system"]["health"] == "healthy"
        assert status["system"]["uptime"] == 0
        assert status["alerts"] == []

    def test_uptime_follows_clock(self, make_broadcaster, clock):
        broadcaster = make_broadcaster()
        clock.advance(90)

        assert broadcaster.get_system_status()["system"]["uptime"] == 90

    def test_day_in_week_three(self, make_broadcaster):
        clock = VirtualClock(datetime(2025, 10, 15, 12, 0, tzinfo=timezone.utc))
        status = make_broadcaster(clock=clock).get_system_status()

        assert status["phase"]["currentDay"] == 15
        assert status["phase"]["week"] == 3
        assert status["tasks"]["today"] == 3

    def test_seed_from_reports(self, make_broadcaster, plan):
        broadcaster = make_broadcaster()
        reports = [
            build_daily_report(1, 1, [], plan, date(2025, 10, 1)),
        ]
        # A persisted report with completions
        data = reports[0].to_dict()
        data["summary"].update(total=3, completed=3, successRate="100.0")

        broadcaster.seed_from_reports([DailyReport.from_dict(data)] * 2)

        status = broadcaster.get_system_status()["tasks"]
        assert status["completed"] == 6
        assert status["completionRate"] == 21


class TestAlerts:
    def test_history_is_bounded_newest_first(self, make_broadcaster):
        broadcaster = make_broadcaster()

        for i in range(60):
            broadcaster.record_alert("info", f"alert {i}", "test")

        alerts = broadcaster.alerts
        assert len(alerts) == MAX_ALERTS == 50
        assert alerts[0].message == "alert 59"
        assert alerts[-1].message == "alert 10"
        assert broadcaster.get_system_status()["system"]["alerts"] == 50

    def test_alert_fields(self, make_broadcaster, clock):
        alert = make_broadcaster().record_alert("warning", "High memory", "engine")

        assert alert.to_dict() == {
            "id": alert.id,
            "level": "warning",
            "message": "High memory",
            "component": "engine",
            "timestamp": clock.now().isoformat(),
        }

    def test_alert_ids_are_unique(self, make_broadcaster):
        broadcaster = make_broadcaster()
        ids = {broadcaster.record_alert("info", "x", "y").id for _ in range(10)}
        assert len(ids) == 10


class TestObservers:
    """Test observer delivery."""

    @pytest.mark.asyncio
    async def test_connect_sends_initial_snapshot(self, make_broadcaster):
        broadcaster = make_broadcaster()
        observer = FakeObserver()

        await broadcaster.connect(observer)

        assert observer.messages[0]["type"] == "initial"
        assert observer.messages[0]["data"]["phase"]["currentDay"] == 1
        assert broadcaster.observer_count == 1

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_observer(self, make_broadcaster):
        broadcaster = make_broadcaster()
        observers = [FakeObserver(), FakeObserver()]
        for observer in observers:
            await broadcaster.connect(observer)

        delivered = await broadcaster.broadcast_update()

        assert delivered == 2
        for observer in observers:
            update = observer.messages[-1]
            assert update["type"] == "update"
            assert set(update["data"]) == {"status", "metrics", "team"}

    @pytest.mark.asyncio
    async def test_failed_observer_is_pruned(self, make_broadcaster):
        broadcaster = make_broadcaster()
        healthy = FakeObserver()
        await broadcaster.connect(healthy)
        broken = FakeObserver()
        await broadcaster.connect(broken)
        broken.fail = True

        delivered = await broadcaster.broadcast_update()

        assert delivered == 1
        assert broadcaster.observer_count == 1
        assert len(healthy.messages) == 2

    @pytest.mark.asyncio
    async def test_observer_failing_on_connect_is_dropped(self, make_broadcaster):
        broadcaster = make_broadcaster()

        await broadcaster.connect(FakeObserver(fail=True))

        assert broadcaster.observer_count == 0

    @pytest.mark.asyncio
    async def test_disconnect(self, make_broadcaster):
        broadcaster = make_broadcaster()
        observer = FakeObserver()
        await broadcaster.connect(observer)

        broadcaster.disconnect(observer)
        broadcaster.disconnect(observer)

        assert broadcaster.observer_count == 0
        assert await broadcaster.broadcast_update() == 0

    @pytest.mark.asyncio
    async def test_add_alert_broadcasts(self, make_broadcaster):
        broadcaster = make_broadcaster()
        observer = AsyncMock()
        await broadcaster.connect(observer)

        await broadcaster.add_alert("info", "hello", "test")

        assert observer.send_json.await_count == 2
        update = observer.send_json.await_args[0][0]
        assert update["data"]["status"]["alerts"][0]["message"] == "hello"


class TestScheduledJobs:
    """Test job cadence and simulated perturbations."""

    @pytest.mark.asyncio
    async def test_job_cadence(self, make_broadcaster, clock):
        # 0.99 draws: no health issue, no task progress
        broadcaster = make_broadcaster(outcomes=ScriptedOutcomeSource(default=0.99))
        scheduler = JobScheduler(clock)
        broadcaster.register_jobs(scheduler)

        await scheduler.advance(120)

        assert set(scheduler.jobs) == {"broadcast", "health-check", "task-progress"}
        assert scheduler.run_count("broadcast") == 12
        assert scheduler.run_count("health-check") == 2
        assert scheduler.run_count("task-progress") == 4

    @pytest.mark.asyncio
    async def test_health_warning(self, make_broadcaster):
        broadcaster = make_broadcaster(outcomes=ScriptedOutcomeSource([0.01]))

        await broadcaster.perturb_health()

        assert broadcaster.health is Health.WARNING
        assert broadcaster.alerts[0].level == "warning"
        assert broadcaster.alerts[0].component == "automation-engine"

    @pytest.mark.asyncio
    async def test_health_error(self, make_broadcaster):
        broadcaster = make_broadcaster(outcomes=ScriptedOutcomeSource([0.5, 0.01]))

        await broadcaster.perturb_health()

        assert broadcaster.health is Health.ERROR
        assert broadcaster.alerts[0].message == "Task execution timeout"

    @pytest.mark.asyncio
    async def test_health_recovers(self, make_broadcaster):
        broadcaster = make_broadcaster(outcomes=ScriptedOutcomeSource([0.01, 0.5, 0.5]))

        await broadcaster.perturb_health()
        await broadcaster.perturb_health()

        assert broadcaster.health is Health.HEALTHY
        assert len(broadcaster.alerts) == 1

    @pytest.mark.asyncio
    async def test_task_progress(self, make_broadcaster):
        broadcaster = make_broadcaster(outcomes=ScriptedOutcomeSource([0.05, 0.5]))

        await broadcaster.simulate_task_progress()
        await broadcaster.simulate_task_progress()

        assert broadcaster.tasks_completed == 1
        assert broadcaster.alerts[0].message == "Task completed successfully (1/28)"

    @pytest.mark.asyncio
    async def test_task_progress_capped_at_plan_total(self, make_broadcaster):
        broadcaster = make_broadcaster(outcomes=ScriptedOutcomeSource(default=0.0))
        broadcaster.tasks_completed = 28

        await broadcaster.simulate_task_progress()

        assert broadcaster.tasks_completed == 28
        assert broadcaster.alerts == []


class TestMetricsAndTeam:
    def test_metrics_without_reports(self, make_broadcaster):
        metrics = make_broadcaster().get_metrics()

        assert metrics["performance"] == {
            "successRate": 0,
            "efficiency": 0,
            "averageTaskTime": 0,
            "errorRate": 0,
        }
        assert metrics["realtime"]["activeConnections"] == 0
        assert metrics["targets"]["memoryRetrieval"]["target"] == 500

    def test_metrics_use_recent_reports(self, make_broadcaster, store, plan):
        for day in range(1, 10):
            report = build_daily_report(day, 1, [], plan, date(2025, 10, day))
            data = report.to_dict()
            data["summary"].update(total=4, completed=3, failed=1, successRate="75.0")
            data["performance"].update(efficiency=80, averageTime=5)

            store.save(DailyReport.from_dict(data))

        metrics = make_broadcaster().get_metrics()

        assert metrics["performance"] == {
            "successRate": 75,
            "efficiency": 80,
            "averageTaskTime": 5,
            "errorRate": 25,
        }

    def test_simulated_values_use_outcome_draws(self, make_broadcaster):
        metrics = make_broadcaster(outcomes=ScriptedOutcomeSource(default=0.5)).get_metrics()

        assert metrics["targets"]["memoryRetrieval"]["current"] == 300
        assert metrics["realtime"]["cpuUsage"] == 35

    def test_team_status(self, make_broadcaster, clock):
        # aria: lastActive, presence 0.1 (online), two task draws, completedToday
        outcomes = ScriptedOutcomeSource([0.5, 0.1, 0.2, 0.9, 0.7], default=0.95)
        team = make_broadcaster(outcomes=outcomes).get_team_status()

        aria = team["aria"]
        assert aria["name"] == "Aria"
        assert aria["status"] == "online"
        assert aria["tasksInProgress"] == 1
        assert aria["completedToday"] == 2
        assert aria["lastActive"] == datetime(2025, 10, 1, 8, 0, tzinfo=timezone.utc).isoformat()
        assert team["lex"]["status"] == "offline"

    def test_team_status_without_team(self, make_broadcaster):
        assert make_broadcaster(team=TeamConfig()).get_team_status() == {}
