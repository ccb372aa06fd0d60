"""Execution simulator for plan tasks.

Models running a task: the task is classified by name, takes a base duration
plus jitter, and fails with a small fixed probability.
"""

import logging
from dataclasses import dataclass
from typing import Literal

from phaseops.clock import Clock
from phaseops.outcomes import OutcomeSource
from phaseops.plan import ScheduledTask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryProfile:
    """Base duration and jitter for a task category, in seconds."""

    base_seconds: float
    variance_seconds: float


# Checked in this order; first keyword contained in the task name wins
CATEGORY_PROFILES: dict[str, CategoryProfile] = {
    "Schema": CategoryProfile(3.0, 1.0),
    "Vector": CategoryProfile(5.0, 2.0),
    "Memory": CategoryProfile(4.0, 1.5),
    "Safety": CategoryProfile(6.0, 2.5),
    "Testing": CategoryProfile(8.0, 3.0),
    "Integration": CategoryProfile(10.0, 4.0),
    "Dashboard": CategoryProfile(4.0, 1.0),
}
DEFAULT_CATEGORY = "Schema"


@dataclass(frozen=True)
class SimulationOutcome:
    """Outcome of a simulated task run."""

    status: Literal["completed", "failed"]
    message: str
    duration_seconds: float


def classify_task(name: str) -> str:
    """Return the category keyword for a task name (default Schema)."""
    for category in CATEGORY_PROFILES:
        if category in name:
            return category
    return DEFAULT_CATEGORY


class ExecutionSimulator:
    """Simulates running a task on the given clock.

    Args:
        clock: Clock used to suspend for the simulated duration
        outcomes: Source of failure and jitter draws
        failure_probability: Chance that a run fails before doing any work
    """

    def __init__(
        self, clock: Clock, outcomes: OutcomeSource, failure_probability: float = 0.05
    ) -> None:
        self.clock = clock
        self.outcomes = outcomes
        self.failure_probability = failure_probability

    def planned_duration(self, category: str) -> float:
        profile = CATEGORY_PROFILES[category]
        return profile.base_seconds + self.outcomes.uniform(0, profile.variance_seconds)

    async def run(self, task: ScheduledTask) -> SimulationOutcome:
        """Run a task to completion and return its outcome.

        Blocks (on the clock) for the whole simulated duration; nothing is
        observable until the outcome is returned.
        """
        category = classify_task(task.name)
        duration = self.planned_duration(category)

        logger.info(f"Simulating {category} task execution ({round(duration)}s)")

        if self.outcomes.random() < self.failure_probability:
            return SimulationOutcome(
                status="failed",
                message=f"Simulated failure during {category} execution",
                duration_seconds=0.0,
            )

        await self.clock.sleep(duration)
        return SimulationOutcome(
            status="completed",
            message="Task completed successfully",
            duration_seconds=duration,
        )
