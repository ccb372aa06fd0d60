"""Live status broadcasting for dashboard observers.

StatusBroadcaster is the single owner of the live status snapshot (task
counters, system health) and the alert history. It pushes snapshots to
connected observers on connect and on a fixed cadence, and runs the
simulated health and progress updates as named scheduler jobs.

All state is touched from the event loop only; jobs run one at a time on
the JobScheduler, so no locking is needed.
"""

import logging
import math
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Protocol

from phaseops.clock import Clock, JobScheduler
from phaseops.config import PhaseOpsConfig
from phaseops.outcomes import OutcomeSource
from phaseops.phase_calendar import phase_day, phase_progress, round_half_up, week_for_day
from phaseops.plan import PhasePlan
from phaseops.reports import DailyReport, ReportStore
from phaseops.team import TeamConfig

logger = logging.getLogger(__name__)

MAX_ALERTS = 50
RECENT_REPORT_WINDOW = 7

WARNING_PROBABILITY = 0.05
ERROR_PROBABILITY = 0.02
PROGRESS_PROBABILITY = 0.1

# Presence statuses and their cumulative selection weights
PRESENCE_WEIGHTS = (("online", 0.4), ("busy", 0.3), ("away", 0.2), ("offline", 0.1))


class Health(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


class Observer(Protocol):
    """A connected listener, e.g. a FastAPI WebSocket."""

    async def send_json(self, data: Any) -> None: ...


@dataclass(frozen=True)
class Alert:
    id: str
    level: str
    message: str
    component: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "message": self.message,
            "component": self.component,
            "timestamp": self.timestamp.isoformat(),
        }


class StatusBroadcaster:
    """Owns the live status snapshot and pushes it to observers.

    Args:
        config: Run configuration (horizon, job intervals, phase start)
        plan: Phase plan, used for today's task count and the task total
        clock: Clock for timestamps and uptime
        outcomes: Source of draws for simulated perturbations
        report_store: Persisted daily reports, read for metrics
        team: Team configuration for team status
    """

    def __init__(
        self,
        config: PhaseOpsConfig,
        plan: PhasePlan,
        clock: Clock,
        outcomes: OutcomeSource,
        report_store: ReportStore,
        team: TeamConfig | None = None,
    ) -> None:
        self.config = config
        self.plan = plan
        self.clock = clock
        self.outcomes = outcomes
        self.report_store = report_store
        self.team = team or TeamConfig()

        self.started_at = clock.now()
        self.health = Health.HEALTHY
        self.tasks_completed = 0
        self.tasks_total = plan.total_tasks
        self._alerts: deque[Alert] = deque(maxlen=MAX_ALERTS)
        self._observers: list[Observer] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    async def connect(self, observer: Observer) -> None:
        """Register an observer and send it the current snapshot."""
        if observer not in self._observers:
            self._observers.append(observer)
        logger.info("Dashboard client connected")
        await self._send(observer, {"type": "initial", "data": self.get_system_status()})

    def disconnect(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
            logger.info("Dashboard client disconnected")

    async def _send(self, observer: Observer, message: dict[str, Any]) -> bool:
        try:
            await observer.send_json(message)
        except Exception as e:
            logger.warning(f"Failed to send update to client, dropping it: {e}")
            if observer in self._observers:
                self._observers.remove(observer)
            return False
        return True

    async def broadcast_update(self) -> int:
        """Push a merged status/metrics/team update to every observer.

        Returns:
            Number of observers the update was delivered to
        """
        if not self._observers:
            return 0

        message = {
            "type": "update",
            "timestamp": self.clock.now().isoformat(),
            "data": {
                "status": self.get_system_status(),
                "metrics": self.get_metrics(),
                "team": self.get_team_status(),
            },
        }

        delivered = 0
        for observer in list(self._observers):
            if await self._send(observer, message):
                delivered += 1
        return delivered

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    @property
    def alerts(self) -> list[Alert]:
        """Alert history, newest first."""
        return list(self._alerts)

    def record_alert(self, level: str, message: str, component: str) -> Alert:
        """Insert an alert at the front of the bounded history."""
        alert = Alert(
            id=uuid.uuid4().hex,
            level=level,
            message=message,
            component=component,
            timestamp=self.clock.now(),
        )
        self._alerts.appendleft(alert)
        logger.info(f"Alert added: {message}")
        return alert

    async def add_alert(self, level: str, message: str, component: str) -> Alert:
        alert = self.record_alert(level, message, component)
        await self.broadcast_update()
        return alert

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def current_day(self) -> int:
        return phase_day(self.clock.now(), self.config.phase_start, self.config.horizon_days)

    def uptime_seconds(self) -> int:
        return int((self.clock.now() - self.started_at).total_seconds())

    def get_system_status(self) -> dict[str, Any]:
        day = self.current_day()
        days_remaining, progress = phase_progress(day, self.config.horizon_days)
        completion_rate = (
            round_half_up(self.tasks_completed / self.tasks_total * 100)
            if self.tasks_total
            else 0
        )

        return {
            "phase": {
                "currentDay": day,
                "totalDays": self.config.horizon_days,
                "daysRemaining": days_remaining,
                "progress": progress,
                "week": week_for_day(day),
            },
            "tasks": {
                "today": len(self.plan.tasks_for_day(day)),
                "completed": self.tasks_completed,
                "total": self.tasks_total,
                "completionRate": completion_rate,
            },
            "system": {
                "health": self.health.value,
                "uptime": self.uptime_seconds(),
                "lastUpdate": self.clock.now().isoformat(),
                "alerts": len(self._alerts),
            },
            "alerts": [alert.to_dict() for alert in self._alerts],
        }

    def get_metrics(self) -> dict[str, Any]:
        recent = self.report_store.list_reports()[-RECENT_REPORT_WINDOW:]

        if recent:
            avg_success = sum(float(r.summary.success_rate) for r in recent) / len(recent)
            avg_efficiency = sum(r.performance.efficiency for r in recent) / len(recent)
            avg_task_time = round_half_up(
                sum(r.performance.average_time_seconds for r in recent) / len(recent)
            )
        else:
            avg_success = avg_efficiency = 0.0
            avg_task_time = 0

        return {
            "performance": {
                "successRate": round_half_up(avg_success),
                "efficiency": round_half_up(avg_efficiency),
                "averageTaskTime": avg_task_time,
                "errorRate": _error_rate(recent),
            },
            "targets": {
                "memoryRetrieval": {"target": 500, "current": self._draw_int(200, 200)},
                "guardrailLatency": {"target": 200, "current": self._draw_int(100, 50)},
                "contextRetention": {"target": 95, "current": self._draw_int(10, 90)},
                "violationDetection": {"target": 99, "current": self._draw_int(5, 95)},
            },
            "realtime": {
                "cpuUsage": self._draw_int(30, 20),
                "memoryUsage": self._draw_int(40, 30),
                "apiRequests": self._draw_int(100, 50),
                "activeConnections": self.observer_count,
            },
        }

    def get_team_status(self) -> dict[str, Any]:
        now = self.clock.now()
        status: dict[str, Any] = {}
        for member_id, member in self.team.members.items():
            assigned = self.team.assigned_tasks(member_id)
            last_active = now - timedelta(minutes=self.outcomes.random() * 120)
            status[member_id] = {
                **member,
                "status": self._draw_presence(),
                "lastActive": last_active.isoformat(),
                "tasksInProgress": sum(1 for _ in assigned if self.outcomes.random() < 0.3),
                "completedToday": self._draw_int(3, 0),
            }
        return status

    def health_report(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "uptime": self.uptime_seconds(),
            "timestamp": self.clock.now().isoformat(),
        }

    def _draw_int(self, spread: int, offset: int) -> int:
        return math.floor(self.outcomes.random() * spread) + offset

    def _draw_presence(self) -> str:
        draw = self.outcomes.random()
        cumulative = 0.0
        for presence, weight in PRESENCE_WEIGHTS:
            cumulative += weight
            if draw <= cumulative:
                return presence
        return "offline"

    # ------------------------------------------------------------------
    # Report state
    # ------------------------------------------------------------------

    def seed_from_reports(self, reports: list[DailyReport]) -> None:
        """Initialize the completed counter from persisted daily reports."""
        completed = sum(r.summary.completed for r in reports)
        self.tasks_completed = min(completed, self.tasks_total)

    # ------------------------------------------------------------------
    # Scheduled jobs
    # ------------------------------------------------------------------

    async def perturb_health(self) -> None:
        """Simulate occasional system issues."""
        if self.outcomes.random() < WARNING_PROBABILITY:
            self.health = Health.WARNING
            await self.add_alert("warning", "High memory usage detected", "automation-engine")
        elif self.outcomes.random() < ERROR_PROBABILITY:
            self.health = Health.ERROR
            await self.add_alert("error", "Task execution timeout", "task-executor")
        else:
            self.health = Health.HEALTHY

    async def simulate_task_progress(self) -> None:
        """Occasionally count another completed task, up to the plan total."""
        if self.outcomes.random() >= PROGRESS_PROBABILITY:
            return
        if self.tasks_completed >= self.tasks_total:
            return

        self.tasks_completed += 1
        await self.add_alert(
            "info",
            f"Task completed successfully ({self.tasks_completed}/{self.tasks_total})",
            "task-executor",
        )

    def register_jobs(self, scheduler: JobScheduler) -> None:
        scheduler.add_job("broadcast", self.config.broadcast_interval_seconds, self.broadcast_update)
        scheduler.add_job("health-check", self.config.health_interval_seconds, self.perturb_health)
        scheduler.add_job(
            "task-progress", self.config.progress_interval_seconds, self.simulate_task_progress
        )


def _error_rate(reports: list[DailyReport]) -> int:
    total = sum(r.summary.total for r in reports)
    failed = sum(r.summary.failed for r in reports)
    return round_half_up(failed / total * 100) if total else 0
