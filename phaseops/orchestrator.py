"""Daily cycle orchestration.

Coordinates one full daily cycle: resolves today's phase day, runs the
scheduled tasks one at a time through the dependency gate and the execution
simulator, notifies after every task, then aggregates and persists the daily
report.
"""

import logging
import traceback
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from opentelemetry import trace

from phaseops.clock import Clock
from phaseops.config import PhaseOpsConfig
from phaseops.gate import DependencyGate
from phaseops.ledger import CompletionLedger
from phaseops.models import TaskExecutionResult
from phaseops.phase_calendar import phase_day, week_for_day
from phaseops.plan import PhasePlan, ScheduledTask
from phaseops.reports import DailyReport, ReportStore, build_daily_report
from phaseops.simulator import ExecutionSimulator
from phaseops.slack_notifier import NotificationSink
from phaseops.telemetry import CycleMetrics

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Outcome of one daily cycle.

    Attributes:
        day: Phase day the cycle ran for
        week: Week of that day
        results: Task results in selection order
        report: Aggregated daily report
        report_path: Where the report was written
    """

    day: int
    week: int
    results: list[TaskExecutionResult]
    report: DailyReport
    report_path: Path


class DailyOrchestrator:
    """Runs the tasks scheduled for the current phase day.

    Tasks are processed strictly sequentially in selection order. Each task's
    outcome is isolated: a blocked dependency, a simulated failure or an
    exception from the gate or simulator is recorded on that task and the
    cycle moves on. Only report persistence errors abort the cycle.

    Args:
        config: Run configuration
        plan: Phase plan to select tasks from
        gate: Dependency gate
        simulator: Execution simulator
        notifier: Notification sink for task and daily messages
        report_store: Where daily reports are persisted
        clock: Clock for timestamps and the inter-task pause
        ledger: Completion ledger updated after each completed task
        tracer: OpenTelemetry tracer (uses the global tracer if None)
        metrics: Metric instruments (metrics are skipped if None)
    """

    def __init__(
        self,
        config: PhaseOpsConfig,
        plan: PhasePlan,
        gate: DependencyGate,
        simulator: ExecutionSimulator,
        notifier: NotificationSink,
        report_store: ReportStore,
        clock: Clock,
        ledger: CompletionLedger | None = None,
        tracer: trace.Tracer | None = None,
        metrics: CycleMetrics | None = None,
    ) -> None:
        self.config = config
        self.plan = plan
        self.gate = gate
        self.simulator = simulator
        self.notifier = notifier
        self.report_store = report_store
        self.clock = clock
        self.ledger = ledger
        self.tracer = tracer or trace.get_tracer("phaseops")
        self.metrics = metrics

    def current_day(self) -> int:
        return phase_day(self.clock.now(), self.config.phase_start, self.config.horizon_days)

    async def execute_daily(self) -> CycleResult:
        """Run one full daily cycle.

        Returns:
            CycleResult with ordered task results and the persisted report

        Raises:
            ReportPersistError: If the daily report cannot be written
        """
        started = self.clock.now()
        day = self.current_day()
        week = week_for_day(day)
        tasks = self.plan.tasks_for_day(day)

        logger.info(
            f"Starting daily cycle: day {day}/{self.config.horizon_days}, "
            f"week {week}, {len(tasks)} task(s) scheduled"
        )

        with self.tracer.start_as_current_span("phaseops.cycle") as span:
            span.set_attribute("cycle.day", day)
            span.set_attribute("cycle.week", week)
            span.set_attribute("cycle.tasks", len(tasks))

            await self._notify("cycle_started", self.notifier.cycle_started(day, week, len(tasks)))

            results = await self.execute_tasks(tasks)

            report = build_daily_report(
                day,
                week,
                results,
                self.plan,
                started.date(),
                horizon=self.config.horizon_days,
                expected_seconds=self.config.expected_task_seconds,
            )
            report_path = self.report_store.save(report)

            await self._notify("daily_report", self.notifier.daily_report(report, results))

            span.set_attribute("cycle.completed", report.summary.completed)
            span.set_attribute("cycle.failed", report.summary.failed)
            span.set_attribute("cycle.blocked", report.summary.blocked)
            span.set_attribute("cycle.efficiency", report.performance.efficiency)

        if self.metrics is not None:
            self.metrics.cycles.add(1, {"outcome": "completed"})

        return CycleResult(
            day=day, week=week, results=results, report=report, report_path=report_path
        )

    async def execute_tasks(self, tasks: Sequence[ScheduledTask]) -> list[TaskExecutionResult]:
        """Run tasks in order, notifying and pausing after each one."""
        results: list[TaskExecutionResult] = []

        for index, task in enumerate(tasks):
            logger.info(
                f"Processing task {task.id}: {task.name} "
                f"(owner: {task.owner}, estimated: {task.hours}h)"
            )

            with self.tracer.start_as_current_span("phaseops.task") as span:
                span.set_attribute("task.id", task.id)
                span.set_attribute("task.name", task.name)
                span.set_attribute("task.owner", task.owner)

                result = await self.execute_task(task)

                span.set_attribute("task.status", result.status)
                span.set_attribute("task.duration_seconds", result.duration_seconds)

            results.append(result)
            self._record_result(result)

            await self._notify("task_settled", self.notifier.task_settled(result))

            if index < len(tasks) - 1:
                await self.clock.sleep(self.config.task_pause_seconds)

        return results

    async def execute_task(self, task: ScheduledTask) -> TaskExecutionResult:
        """Gate and run a single task. Never raises."""
        started_at = self.clock.now()

        try:
            if not self.gate.ready(task.deps):
                logger.info(f"Task {task.id} blocked: dependencies not completed")
                return self._result(
                    task, "blocked", "Dependencies not completed", started_at, duration=0
                )

            outcome = await self.simulator.run(task)

        except Exception as e:
            logger.error(f"Task {task.id} failed: {e}")
            return self._result(
                task,
                "failed",
                str(e) or type(e).__name__,
                started_at,
                error=traceback.format_exc(),
            )

        result = self._result(task, outcome.status, outcome.message, started_at)
        if result.status == "completed":
            logger.info(f"Task {task.id} completed successfully in {result.duration_seconds}s")
        else:
            logger.error(f"Task {task.id} failed: {result.message}")
        return result

    def _result(
        self,
        task: ScheduledTask,
        status: str,
        message: str,
        started_at: datetime,
        duration: int | None = None,
        error: str | None = None,
    ) -> TaskExecutionResult:
        ended_at = self.clock.now()
        if duration is None:
            duration = int((ended_at - started_at).total_seconds())

        return TaskExecutionResult(
            task_id=task.id,
            name=task.name,
            owner=task.owner,
            status=status,  # type: ignore[arg-type]
            message=message,
            started_at=started_at,
            ended_at=ended_at,
            duration_seconds=duration,
            error=error,
        )

    def _record_result(self, result: TaskExecutionResult) -> None:
        if self.metrics is not None:
            self.metrics.tasks.add(1, {"status": result.status})
            self.metrics.task_duration.record(result.duration_seconds)

        if self.ledger is None or result.status != "completed":
            return

        self.ledger.mark_completed(result.task_id, result.ended_at)
        try:
            self.ledger.save(self.config.state_dir)
        except OSError as e:
            logger.error(f"Failed to save completion ledger: {e}")

    async def _notify(self, event: str, delivery) -> None:
        """Await a notification; delivery errors are logged, never raised."""
        try:
            await delivery
        except Exception as e:
            logger.error(f"Failed to deliver {event} notification: {e}")
            if self.metrics is not None:
                self.metrics.notifications_failed.add(1, {"event": event})
