"""Data models for task execution.

Results are JSON serializable via to_dict() for notifications and logging.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

TaskStatus = Literal["completed", "failed", "blocked"]


@dataclass(frozen=True)
class TaskExecutionResult:
    """Result of processing one scheduled task in a daily cycle.

    Created once per task per cycle and never mutated.

    Status values:
        completed: Task ran and finished successfully
        failed: Task ran (or its dependency check raised) and failed
        blocked: Task prerequisites were not satisfied; it did not run
    """

    task_id: str
    name: str
    owner: str
    status: TaskStatus
    message: str
    started_at: datetime
    ended_at: datetime
    duration_seconds: int
    # If failed - captured traceback text
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "name": self.name,
            "owner": self.owner,
            "status": self.status,
            "message": self.message,
            "startTime": self.started_at.isoformat(),
            "endTime": self.ended_at.isoformat(),
            "duration": self.duration_seconds,
            "error": self.error,
        }
