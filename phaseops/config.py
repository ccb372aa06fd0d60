"""Configuration for PhaseOps.

Provides a single immutable configuration value with sensible defaults and
environment variable overrides. The value is built once by the entry point and
passed explicitly into every component.
"""

import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

DEFAULT_PHASE_START = date(2025, 10, 1)
HORIZON_DAYS = 18


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "enabled", "on")


def _env_path(name: str) -> Path | None:
    value = os.getenv(name)
    return Path(value) if value else None


@dataclass(frozen=True)
class PhaseOpsConfig:
    """Configuration for daily cycle execution and the status dashboard.

    All settings have defaults suitable for local runs but can be overridden
    via environment variables using the from_env() factory method.
    """

    # Phase calendar
    phase_start: date = DEFAULT_PHASE_START
    horizon_days: int = HORIZON_DAYS

    # Execution pacing and simulation
    task_pause_seconds: float = 2.0
    failure_probability: float = 0.05
    dependency_mode: str = "ledger"
    dependency_pass_rate: float = 0.8
    expected_task_seconds: float = 300.0

    # Files
    reports_dir: Path = field(default_factory=lambda: Path("reports"))
    state_dir: Path = field(default_factory=lambda: Path("state"))
    plan_file: Path | None = None
    team_file: Path = field(
        default_factory=lambda: Path("config") / "team-assignments.json"
    )

    # Slack notifications
    slack_webhook_url: str | None = None
    slack_channel: str | None = None
    slack_validation_enabled: bool = False

    # Telemetry settings
    otlp_endpoint: str = "http://localhost:4317"
    service_name: str = "phaseops"

    # Dashboard
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 3000
    broadcast_interval_seconds: float = 10.0
    health_interval_seconds: float = 60.0
    progress_interval_seconds: float = 30.0

    # Logging
    log_dir: Path | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "PhaseOpsConfig":
        """Load config with environment variable overrides.

        Environment variables:
            PHASEOPS_PHASE_START: Phase start date, YYYY-MM-DD (default: 2025-10-01)
            PHASEOPS_TASK_PAUSE: Seconds between tasks (default: 2)
            PHASEOPS_FAILURE_PROBABILITY: Simulated failure chance (default: 0.05)
            PHASEOPS_DEPENDENCY_MODE: "ledger" or "random" (default: ledger)
            PHASEOPS_REPORTS_DIR: Daily report directory (default: reports)
            PHASEOPS_STATE_DIR: Completion ledger directory (default: state)
            PHASEOPS_PLAN_FILE: YAML/JSON plan file (default: built-in plan)
            PHASEOPS_TEAM_FILE: Team assignments file
                (default: config/team-assignments.json)
            SLACK_WEBHOOK_URL: Incoming webhook; notifications are logged when unset
            PHASEOPS_SLACK_CHANNEL: Target channel for channel validation
            HAL_SLACK_VALIDATION: "enabled" turns channel validation on
            OTLP_ENDPOINT: Override otlp_endpoint (default: http://localhost:4317)
            PORT: Dashboard port (default: 3000)
            PHASEOPS_LOG_DIR: Enables rotating file logs in this directory
            PHASEOPS_LOG_LEVEL: Console log level (default: INFO)
        """
        defaults = cls()
        phase_start = os.getenv("PHASEOPS_PHASE_START")

        return cls(
            phase_start=(
                date.fromisoformat(phase_start) if phase_start else defaults.phase_start
            ),
            task_pause_seconds=float(os.getenv("PHASEOPS_TASK_PAUSE", "2")),
            failure_probability=float(
                os.getenv("PHASEOPS_FAILURE_PROBABILITY", "0.05")
            ),
            dependency_mode=os.getenv("PHASEOPS_DEPENDENCY_MODE", "ledger"),
            reports_dir=Path(os.getenv("PHASEOPS_REPORTS_DIR", "reports")),
            state_dir=Path(os.getenv("PHASEOPS_STATE_DIR", "state")),
            plan_file=_env_path("PHASEOPS_PLAN_FILE"),
            team_file=Path(
                os.getenv("PHASEOPS_TEAM_FILE", str(defaults.team_file))
            ),
            slack_webhook_url=os.getenv("SLACK_WEBHOOK_URL") or None,
            slack_channel=os.getenv("PHASEOPS_SLACK_CHANNEL") or None,
            slack_validation_enabled=_env_bool("HAL_SLACK_VALIDATION", False),
            otlp_endpoint=os.getenv("OTLP_ENDPOINT", "http://localhost:4317"),
            dashboard_port=int(os.getenv("PORT", "3000")),
            log_dir=_env_path("PHASEOPS_LOG_DIR"),
            log_level=os.getenv("PHASEOPS_LOG_LEVEL", "INFO").upper(),
        )
