"""Completion ledger persistence.

Records which plan tasks have completed across daily runs, so dependency
gating can consult real completion state instead of guessing.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

LEDGER_FILENAME = "completion_ledger.json"


@dataclass
class CompletionLedger:
    """Persistent record of completed task ids.

    Attributes:
        completed: Map of task_id to ISO timestamp of its first completion
        updated_at: When the ledger was last modified
    """

    completed: dict[str, str] = field(default_factory=dict)
    updated_at: datetime | None = None

    def is_completed(self, task_id: str) -> bool:
        return task_id in self.completed

    def mark_completed(self, task_id: str, when: datetime) -> None:
        """Record a completion. The first completion time is kept."""
        self.completed.setdefault(task_id, when.isoformat())
        self.updated_at = when

    def save(self, state_dir: Path) -> None:
        """Persist the ledger to JSON, creating the state directory if needed.

        Args:
            state_dir: Directory to save the ledger file in
        """
        state_dir.mkdir(parents=True, exist_ok=True)
        path = state_dir / LEDGER_FILENAME

        data = asdict(self)
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None

        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def load(cls, state_dir: Path) -> "CompletionLedger":
        """Load the ledger, returning an empty one if no file exists.

        A corrupt ledger file is logged and treated as empty.

        Args:
            state_dir: Directory containing the ledger file

        Returns:
            CompletionLedger with previously recorded completions
        """
        path = state_dir / LEDGER_FILENAME
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = json.load(f)
            updated_at = data.get("updated_at")
            return cls(
                completed=dict(data.get("completed", {})),
                updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
            )
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring corrupt completion ledger {path}: {e}")
            return cls()
