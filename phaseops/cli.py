"""CLI for PhaseOps.

Provides the process entry point for the daily cycle plus read-only commands
for inspecting the schedule and persisted reports, and for serving the
status dashboard.
"""

import asyncio
import dataclasses
import json
import logging
import sys
from datetime import date
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from phaseops import __version__
from phaseops.clock import SystemClock
from phaseops.config import PhaseOpsConfig
from phaseops.gate import DependencyGate, create_oracle
from phaseops.ledger import CompletionLedger
from phaseops.logging_config import configure_logging
from phaseops.orchestrator import CycleResult, DailyOrchestrator
from phaseops.outcomes import RandomOutcomeSource
from phaseops.phase_calendar import clamp_day, phase_day, week_for_day
from phaseops.plan import load_plan_or_empty
from phaseops.reports import ReportStore
from phaseops.simulator import ExecutionSimulator
from phaseops.slack_notifier import SlackNotifier
from phaseops.telemetry import CycleMetrics, setup_telemetry

console = Console()
logger = logging.getLogger(__name__)

STATUS_STYLES = {"completed": "green", "failed": "red", "blocked": "yellow"}


@click.group()
@click.version_option(__version__, prog_name="phaseops")
def cli() -> None:
    """PhaseOps - Fixed-horizon daily task automation."""
    pass


@cli.command()
@click.option("--plan", "plan_file", type=click.Path(), help="YAML/JSON plan file")
@click.option(
    "--failure-probability",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Override the simulated failure chance",
)
@click.option("--seed", type=int, default=None, help="Seed for reproducible draws")
@click.option("--pause", type=click.FloatRange(min=0.0), default=None, help="Seconds between tasks")
def run(
    plan_file: str | None,
    failure_probability: float | None,
    seed: int | None,
    pause: float | None,
) -> None:
    """Run today's daily cycle."""
    config = PhaseOpsConfig.from_env()
    overrides: dict = {}
    if plan_file is not None:
        overrides["plan_file"] = Path(plan_file)
    if failure_probability is not None:
        overrides["failure_probability"] = failure_probability
    if pause is not None:
        overrides["task_pause_seconds"] = pause
    if overrides:
        config = dataclasses.replace(config, **overrides)

    configure_logging(config.log_dir, console_level=config.log_level)

    try:
        cycle = asyncio.run(_run_daily(config, seed))
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    _print_cycle(cycle)
    sys.exit(0)


async def _run_daily(config: PhaseOpsConfig, seed: int | None) -> CycleResult:
    """Internal async implementation of the daily cycle."""
    tracer, meter = setup_telemetry(config)
    clock = SystemClock()
    notifier = SlackNotifier.from_config(config)

    try:
        plan = load_plan_or_empty(config.plan_file)
        ledger = CompletionLedger.load(config.state_dir)
        outcomes = RandomOutcomeSource(seed)

        orchestrator = DailyOrchestrator(
            config=config,
            plan=plan,
            gate=DependencyGate(create_oracle(config, ledger, outcomes)),
            simulator=ExecutionSimulator(clock, outcomes, config.failure_probability),
            notifier=notifier,
            report_store=ReportStore(config.reports_dir),
            clock=clock,
            ledger=ledger,
            tracer=tracer,
            metrics=CycleMetrics(meter),
        )
        return await orchestrator.execute_daily()
    except Exception as e:
        logger.error(f"Daily cycle failed: {e}")
        await notifier.run_failed(e, clock.now())
        raise


def _print_cycle(cycle: CycleResult) -> None:
    """Print the per-task outcome table and the report summary."""
    table = Table(title=f"Day {cycle.day} (week {cycle.week})")
    table.add_column("Task", style="cyan")
    table.add_column("Name")
    table.add_column("Owner")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Message")

    for result in cycle.results:
        style = STATUS_STYLES.get(result.status, "white")
        table.add_row(
            result.task_id,
            result.name,
            result.owner,
            f"[{style}]{result.status}[/{style}]",
            f"{result.duration_seconds}s",
            result.message,
        )

    console.print(table)

    summary = cycle.report.summary
    console.print(
        f"  Tasks: {summary.completed}/{summary.total} completed, "
        f"{summary.failed} failed, {summary.blocked} blocked"
    )
    console.print(f"  Success rate: {summary.success_rate}%")
    console.print(f"  Efficiency: {cycle.report.performance.efficiency}%")
    console.print(f"  Report: {cycle.report_path}")


@cli.command()
@click.option("--day", type=int, default=None, help="Phase day (default: today)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def schedule(day: int | None, as_json: bool) -> None:
    """Show the tasks scheduled for a phase day."""
    config = PhaseOpsConfig.from_env()
    plan = load_plan_or_empty(config.plan_file)

    if day is None:
        day = phase_day(SystemClock().now(), config.phase_start, config.horizon_days)
    else:
        day = clamp_day(day, config.horizon_days)

    tasks = plan.tasks_for_day(day)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "day": day,
                    "week": week_for_day(day),
                    "tasks": [
                        {
                            "id": t.id,
                            "name": t.name,
                            "owner": t.owner,
                            "hours": t.hours,
                            "deps": list(t.deps),
                        }
                        for t in tasks
                    ],
                },
                indent=2,
            )
        )
        return

    if not tasks:
        console.print(f"[yellow]No tasks scheduled for day {day}[/yellow]")
        return

    table = Table(title=f"Day {day}/{config.horizon_days} - week {week_for_day(day)}")
    table.add_column("Task", style="cyan")
    table.add_column("Name")
    table.add_column("Owner")
    table.add_column("Hours", justify="right")
    table.add_column("Depends on")

    for t in tasks:
        table.add_row(t.id, t.name, t.owner, f"{t.hours:g}", ", ".join(t.deps) or "-")

    console.print(table)


@cli.command()
@click.argument("report_date", required=False)
def report(report_date: str | None) -> None:
    """Show the persisted daily report for a date (default: latest)."""
    config = PhaseOpsConfig.from_env()
    store = ReportStore(config.reports_dir)

    if report_date is not None:
        try:
            date.fromisoformat(report_date)
        except ValueError:
            console.print(f"[red]Invalid date:[/red] {report_date} (expected YYYY-MM-DD)")
            sys.exit(1)
        daily = store.load(report_date)
    else:
        reports = store.list_reports(limit=1)
        daily = reports[-1] if reports else None

    if daily is None:
        console.print("[yellow]No daily report found[/yellow]")
        sys.exit(1)

    click.echo(daily.to_json())


@cli.command()
@click.option("--host", default=None, help="Bind address (default: 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Port (default: $PORT or 3000)")
def dashboard(host: str | None, port: int | None) -> None:
    """Serve the status dashboard API."""
    import uvicorn

    from phaseops.dashboard import create_application

    config = PhaseOpsConfig.from_env()
    configure_logging(config.log_dir, console_level=config.log_level)

    app = create_application(config)
    uvicorn.run(
        app,
        host=host or config.dashboard_host,
        port=port or config.dashboard_port,
        log_level=config.log_level.lower(),
    )


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
