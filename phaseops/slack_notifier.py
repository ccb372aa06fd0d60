"""Slack webhook notifier for daily cycle events.

Provides functionality for sending attachment-style messages to a Slack
incoming webhook. All webhook failures are logged but not raised, ensuring
that notification issues don't block the daily cycle. Without a configured
webhook every notification degrades to a log line.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import httpx

from phaseops.config import PhaseOpsConfig
from phaseops.models import TaskExecutionResult
from phaseops.phase_calendar import phase_progress
from phaseops.reports import DailyReport

logger = logging.getLogger(__name__)

# Attachment colors understood by Slack
STATUS_COLORS = {
    "completed": "good",
    "failed": "danger",
    "blocked": "warning",
}

STATUS_EMOJI = {
    "completed": "✅",
    "failed": "❌",
    "blocked": "⏸️",
}

FALLBACK_CHANNEL = "#hal-alerts"
ALLOWED_CHANNELS = (
    "#hal-orchestration",
    "#hal-alerts",
    "#hal-engineering",
    "#general",
    "#random",
)
FORBIDDEN_PREFIXES = ("_",)
_CHANNEL_PATTERN = re.compile(r"^#[a-zA-Z0-9][a-zA-Z0-9_-]*$")


@dataclass
class SlackMessage:
    """Slack webhook message structure.

    Attributes:
        text: Top-level message text (also used for the degraded log line)
        attachments: Optional list of attachment dicts (color, fields, ...)
        channel: Optional channel override
    """

    text: str
    attachments: list[dict[str, Any]] = field(default_factory=list)
    channel: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to webhook payload. Only includes optional keys if set."""
        payload: dict[str, Any] = {"text": self.text}
        if self.attachments:
            payload["attachments"] = self.attachments
        if self.channel is not None:
            payload["channel"] = self.channel
        return payload


@dataclass(frozen=True)
class TaskNotification:
    """Per-task notification payload."""

    task_id: str
    name: str
    owner: str
    status: str
    duration_seconds: int
    message: str

    @classmethod
    def from_result(cls, result: TaskExecutionResult) -> "TaskNotification":
        return cls(
            task_id=result.task_id,
            name=result.name,
            owner=result.owner,
            status=result.status,
            duration_seconds=result.duration_seconds,
            message=result.message,
        )


@dataclass(frozen=True)
class DailyNotification:
    """Per-day notification payload."""

    day: int
    horizon: int
    progress_percent: int
    days_remaining: int
    tasks_today: int
    completed_today: int
    success_rate: str
    efficiency: int
    total_time_minutes: int
    tomorrow_task_count: int

    @classmethod
    def from_report(cls, report: DailyReport, horizon: int) -> "DailyNotification":
        days_remaining, percent = phase_progress(report.day, horizon)
        return cls(
            day=report.day,
            horizon=horizon,
            progress_percent=percent,
            days_remaining=days_remaining,
            tasks_today=report.summary.total,
            completed_today=report.summary.completed,
            success_rate=report.summary.success_rate,
            efficiency=report.performance.efficiency,
            total_time_minutes=report.performance.total_time_minutes,
            tomorrow_task_count=report.next_day.scheduled_tasks,
        )


@dataclass(frozen=True)
class ChannelValidation:
    valid: bool
    channel: str
    error: str | None = None


def validate_channel(channel: str) -> ChannelValidation:
    """Check a channel name against the allowed list and naming rules.

    Invalid channels come back with ``channel`` set to the fallback channel.
    """
    normalized = channel if channel.startswith("#") else f"#{channel}"
    name = normalized[1:]

    for prefix in FORBIDDEN_PREFIXES:
        if name.startswith(prefix):
            return ChannelValidation(
                False, FALLBACK_CHANNEL, f"Channel cannot start with '{prefix}'"
            )

    if not _CHANNEL_PATTERN.match(normalized):
        return ChannelValidation(False, FALLBACK_CHANNEL, "Invalid channel format")

    if normalized not in ALLOWED_CHANNELS:
        return ChannelValidation(False, FALLBACK_CHANNEL, "Channel not in allowed list")

    return ChannelValidation(True, normalized)


async def send_slack_message(webhook_url: str, message: SlackMessage) -> bool:
    """Send a Slack webhook message.

    Uses a 5 second timeout to prevent blocking. All errors (network,
    timeout, HTTP errors) are logged but not raised.

    Args:
        webhook_url: Slack incoming webhook URL
        message: SlackMessage to send

    Returns:
        True if Slack accepted the message, False otherwise
    """
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.post(webhook_url, json=message.to_dict())

            if response.status_code >= 400:
                logger.warning(
                    f"Slack webhook returned {response.status_code}: {response.text}"
                )
                return False
    except httpx.TimeoutException:
        logger.warning("Slack webhook request timed out")
        return False
    except httpx.ConnectError:
        logger.warning("Failed to connect to Slack webhook")
        return False
    except Exception as e:
        logger.warning(f"Slack webhook error: {e}")
        return False

    return True


def _field(title: str, value: Any, short: bool = True) -> dict[str, Any]:
    return {"title": title, "value": str(value), "short": short}


def format_cycle_started(day: int, horizon: int, week: int, task_count: int) -> SlackMessage:
    """Format the daily startup message."""
    return SlackMessage(
        text="🌅 Daily Execution Started",
        attachments=[
            {
                "color": "good",
                "fields": [
                    _field("Phase Day", f"{day}/{horizon}"),
                    _field("Current Week", week),
                    _field("Tasks Today", task_count),
                    _field("Status", "🔄 Starting Execution"),
                ],
            }
        ],
    )


def format_task_update(notification: TaskNotification) -> SlackMessage:
    """Format a per-task update."""
    return SlackMessage(
        text=f"{STATUS_EMOJI.get(notification.status, '')} Task Update",
        attachments=[
            {
                "color": STATUS_COLORS.get(notification.status, "warning"),
                "fields": [
                    _field("Task ID", notification.task_id),
                    _field("Task Name", notification.name),
                    _field("Owner", f"@{notification.owner}"),
                    _field("Status", notification.status),
                    _field("Duration", f"{notification.duration_seconds}s"),
                    _field("Message", notification.message, short=False),
                ],
            }
        ],
    )


def _report_color(success_rate: str) -> str:
    rate = float(success_rate)
    if rate >= 90:
        return "good"
    if rate >= 70:
        return "warning"
    return "danger"


def format_daily_report(notification: DailyNotification) -> SlackMessage:
    """Format the end-of-day summary."""
    return SlackMessage(
        text=f"📊 Daily Report - Day {notification.day}/{notification.horizon}",
        attachments=[
            {
                "color": _report_color(notification.success_rate),
                "fields": [
                    _field(
                        "Progress",
                        f"{notification.progress_percent}% "
                        f"({notification.days_remaining} days remaining)",
                    ),
                    _field(
                        "Tasks Today",
                        f"{notification.completed_today}/{notification.tasks_today} completed",
                    ),
                    _field("Success Rate", f"{notification.success_rate}%"),
                    _field("Efficiency", f"{notification.efficiency}%"),
                    _field("Total Time", f"{notification.total_time_minutes} minutes"),
                    _field("Tomorrow", f"{notification.tomorrow_task_count} tasks scheduled"),
                ],
            }
        ],
    )


def format_attention_alert(results: Sequence[TaskExecutionResult]) -> SlackMessage:
    """Format one batched alert listing failed and blocked tasks."""
    return SlackMessage(
        text=f"🚨 Alert: {len(results)} tasks need attention",
        attachments=[
            {
                "color": "danger",
                "fields": [
                    _field("Task", r.task_id),
                    _field("Status", r.status),
                    _field("Owner", f"@{r.owner}"),
                    _field("Issue", r.message, short=False),
                ],
            }
            for r in results
        ],
    )


def format_run_error(error: BaseException, when: datetime) -> SlackMessage:
    """Format the final notification for an aborted run."""
    return SlackMessage(
        text="💥 Automation Error",
        attachments=[
            {
                "color": "danger",
                "fields": [
                    _field("Error", str(error) or type(error).__name__, short=False),
                    _field("Time", when.strftime("%Y-%m-%d %H:%M:%S")),
                ],
            }
        ],
    )


class NotificationSink(Protocol):
    """Receives per-task and per-day messages from the orchestrator."""

    async def cycle_started(self, day: int, week: int, task_count: int) -> None: ...

    async def task_settled(self, result: TaskExecutionResult) -> None: ...

    async def daily_report(
        self, report: DailyReport, results: Sequence[TaskExecutionResult]
    ) -> None: ...

    async def run_failed(self, error: BaseException, when: datetime) -> None: ...


class SlackNotifier:
    """NotificationSink that posts to a Slack incoming webhook.

    Messages are delivered one at a time in call order. With no webhook URL
    configured, every message is logged instead and nothing is sent.
    """

    def __init__(
        self,
        webhook_url: str | None,
        horizon: int,
        channel: str | None = None,
        validate_channels: bool = False,
    ) -> None:
        self.webhook_url = webhook_url
        self.horizon = horizon
        self.channel = channel
        self.validate_channels = validate_channels
        self.failed_deliveries = 0

    @classmethod
    def from_config(cls, config: PhaseOpsConfig) -> "SlackNotifier":
        return cls(
            webhook_url=config.slack_webhook_url,
            horizon=config.horizon_days,
            channel=config.slack_channel,
            validate_channels=config.slack_validation_enabled,
        )

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)

    async def _route(self, message: SlackMessage) -> None:
        if self.channel is None or not self.validate_channels:
            message.channel = self.channel
            return

        validation = validate_channel(self.channel)
        if validation.valid:
            message.channel = validation.channel
            return

        logger.warning(
            f"Slack validation failed for {self.channel}: {validation.error}"
        )
        await self._post(
            SlackMessage(
                text=(
                    f"🚨 *Slack Validation Failure*\n\n"
                    f"**Channel:** {self.channel}\n"
                    f"**Error:** {validation.error}\n"
                    f"**Action:** Message redirected to {validation.channel}"
                ),
                channel=validation.channel,
            )
        )
        message.channel = validation.channel
        message.text = f"⚠️ *[Redirected from {self.channel}]* {message.text}"

    async def _post(self, message: SlackMessage) -> None:
        delivered = await send_slack_message(self.webhook_url or "", message)
        if delivered:
            logger.info(f"Slack notification sent: {message.text}")
        else:
            self.failed_deliveries += 1

    async def send(self, message: SlackMessage) -> None:
        """Deliver a message, or log it when no webhook is configured."""
        if not self.configured:
            logger.info(f"Slack notification (webhook not configured): {message.text}")
            return

        await self._route(message)
        await self._post(message)

    async def cycle_started(self, day: int, week: int, task_count: int) -> None:
        await self.send(format_cycle_started(day, self.horizon, week, task_count))

    async def task_settled(self, result: TaskExecutionResult) -> None:
        await self.send(format_task_update(TaskNotification.from_result(result)))

    async def daily_report(
        self, report: DailyReport, results: Sequence[TaskExecutionResult]
    ) -> None:
        await self.send(
            format_daily_report(DailyNotification.from_report(report, self.horizon))
        )

        if report.attention_count > 0:
            attention = [r for r in results if r.status in ("failed", "blocked")]
            await self.send(format_attention_alert(attention))

    async def run_failed(self, error: BaseException, when: datetime) -> None:
        await self.send(format_run_error(error, when))
