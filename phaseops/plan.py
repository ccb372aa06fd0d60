"""Phase plan repository and day task selection.

The plan is an immutable table of tasks grouped into weeks. It is built from
a nested structure (weeks -> tasks) either from the built-in DEFAULT_PLAN or
from a YAML/JSON file with the same shape:

    weeks:
      - name: Memory Management Foundation
        days: [1, 2, 3, 4, 5, 6, 7]
        tasks:
          - {id: "1.1", name: Schema Design, owner: Aria, hours: 4, days: [1, 2], deps: []}
"""

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from graphlib import CycleError, TopologicalSorter
from pathlib import Path
from typing import Any

import yaml

from phaseops.errors import ConfigLoadError, PlanValidationError
from phaseops.phase_calendar import week_for_day

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


DEFAULT_PLAN: dict[str, Any] = {
    "weeks": [
        {
            "name": "Memory Management Foundation",
            "days": [1, 2, 3, 4, 5, 6, 7],
            "tasks": [
                {"id": "1.1", "name": "Schema Design", "owner": "Aria", "hours": 4, "days": [1, 2], "deps": []},
                {"id": "1.2", "name": "Vector Storage Research", "owner": "Mira", "hours": 4, "days": [1, 2], "deps": ["1.1"]},
                {"id": "1.3", "name": "Memory Scoping Framework", "owner": "Lex", "hours": 6, "days": [1, 2], "deps": ["1.1"]},
                {"id": "2.1", "name": "Embeddings Service Setup", "owner": "Mira", "hours": 6, "days": [3, 4], "deps": ["1.2"]},
                {"id": "2.2", "name": "Semantic Search Engine", "owner": "Mira", "hours": 8, "days": [3, 4], "deps": ["2.1"]},
                {"id": "2.3", "name": "Memory Indexing System", "owner": "Aria", "hours": 4, "days": [3, 4], "deps": ["2.1"]},
                {"id": "3.1", "name": "Airtable Memory Integration", "owner": "Aria", "hours": 6, "days": [5, 6], "deps": ["1.1", "1.3"]},
                {"id": "3.2", "name": "Memory Access Controls", "owner": "Lex", "hours": 4, "days": [5, 6], "deps": ["3.1"]},
                {"id": "3.3", "name": "Memory Retrieval Optimization", "owner": "Mira", "hours": 6, "days": [5, 6], "deps": ["2.2", "3.1"]},
                {"id": "4.1", "name": "Memory Service Integration Testing", "owner": "Zane", "hours": 8, "days": [7], "deps": ["3.1", "3.2", "3.3"]},
            ],
        },
        {
            "name": "Guardrails and Safety Systems",
            "days": [8, 9, 10, 11, 12],
            "tasks": [
                {"id": "5.1", "name": "Policy Framework Design", "owner": "Lex", "hours": 6, "days": [8, 9], "deps": []},
                {"id": "5.2", "name": "LLM Judge Configuration", "owner": "Lex", "hours": 4, "days": [8, 9], "deps": ["5.1"]},
                {"id": "5.3", "name": "Escalation Workflow Design", "owner": "Lex", "hours": 4, "days": [8, 9], "deps": ["5.1"]},
                {"id": "6.1", "name": "Input Sanitization Pipeline", "owner": "Lex", "hours": 6, "days": [10, 11], "deps": ["5.2"]},
                {"id": "6.2", "name": "Output Filtering System", "owner": "Lex", "hours": 6, "days": [10, 11], "deps": ["5.2"]},
                {"id": "6.3", "name": "Real-time Safety Validation", "owner": "Lex", "hours": 8, "days": [10, 11], "deps": ["6.1", "6.2"]},
                {"id": "7.1", "name": "CI Integration Enhancement", "owner": "Kai", "hours": 4, "days": [12], "deps": ["6.3"]},
                {"id": "7.2", "name": "Safety Metrics Dashboard", "owner": "Kai", "hours": 4, "days": [12], "deps": ["6.3"]},
            ],
        },
        {
            "name": "Performance Tracking and Integration",
            "days": [13, 14, 15, 16, 17, 18],
            "tasks": [
                {"id": "8.1", "name": "Performance Metrics Schema", "owner": "Aria", "hours": 4, "days": [13, 14], "deps": []},
                {"id": "8.2", "name": "Task Outcome Tracking", "owner": "Zane", "hours": 6, "days": [13, 14], "deps": ["8.1"]},
                {"id": "8.3", "name": "Quality Assessment Framework", "owner": "Zane", "hours": 6, "days": [13, 14], "deps": ["8.1"]},
                {"id": "9.1", "name": "Real-time Performance Dashboard", "owner": "Kai", "hours": 8, "days": [15, 16], "deps": ["8.2"]},
                {"id": "9.2", "name": "Drift Detection System", "owner": "Mira", "hours": 6, "days": [15, 16], "deps": ["8.2", "8.3"]},
                {"id": "9.3", "name": "Automated Alerting System", "owner": "Kai", "hours": 4, "days": [15, 16], "deps": ["9.2"]},
                {"id": "10.1", "name": "End-to-End Integration Testing", "owner": "Zane", "hours": 12, "days": [17, 18], "deps": ["9.1", "9.2", "9.3"]},
                {"id": "10.2", "name": "Performance Validation", "owner": "Zane", "hours": 4, "days": [17, 18], "deps": ["10.1"]},
                {"id": "10.3", "name": "Security and Safety Testing", "owner": "Lex", "hours": 4, "days": [17, 18], "deps": ["10.1"]},
                {"id": "10.4", "name": "User Acceptance Testing", "owner": "Lena", "hours": 4, "days": [17, 18], "deps": ["10.2"]},
            ],
        },
    ]
}


@dataclass(frozen=True)
class TaskDefinition:
    """A single plan task. Immutable after load."""

    id: str
    name: str
    owner: str
    hours: float
    days: frozenset[int]
    deps: tuple[str, ...]
    week: int


@dataclass(frozen=True)
class WeekDefinition:
    """A named group of tasks covering a sub-range of phase days."""

    number: int
    name: str
    days: tuple[int, ...]
    tasks: tuple[TaskDefinition, ...]


@dataclass(frozen=True)
class ScheduledTask:
    """A task selected for a specific phase day."""

    definition: TaskDefinition
    week: int
    day: int

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def owner(self) -> str:
        return self.definition.owner

    @property
    def hours(self) -> float:
        return self.definition.hours

    @property
    def deps(self) -> tuple[str, ...]:
        return self.definition.deps

    @property
    def display_id(self) -> str:
        """Slug such as ``1.1-schema-design``."""
        slug = _WHITESPACE.sub("-", self.name.lower())
        return f"{self.id}-{slug}"


class PhasePlan:
    """Immutable table of plan tasks grouped by week.

    Validates on construction that task ids are unique, every dependency
    references a known task and the dependency graph is acyclic.
    """

    def __init__(self, weeks: Iterable[WeekDefinition] = ()) -> None:
        self._weeks = tuple(weeks)
        self._tasks: dict[str, TaskDefinition] = {}

        for week in self._weeks:
            for task in week.tasks:
                if task.id in self._tasks:
                    raise PlanValidationError(
                        f"Duplicate task id '{task.id}'", {"task_id": task.id}
                    )
                self._tasks[task.id] = task

        self._validate_dependencies()

    def _validate_dependencies(self) -> None:
        for task in self._tasks.values():
            unknown = [dep for dep in task.deps if dep not in self._tasks]
            if unknown:
                raise PlanValidationError(
                    f"Task '{task.id}' depends on unknown task(s): {', '.join(unknown)}",
                    {"task_id": task.id, "unknown": unknown},
                )

        sorter = TopologicalSorter({t.id: t.deps for t in self._tasks.values()})
        try:
            sorter.prepare()
        except CycleError as e:
            cycle = list(e.args[1]) if len(e.args) > 1 else []
            raise PlanValidationError(
                f"Dependency cycle detected: {' -> '.join(cycle)}", {"cycle": cycle}
            ) from e

    @classmethod
    def empty(cls) -> "PhasePlan":
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PhasePlan":
        """Build a plan from the nested weeks/tasks structure.

        Raises:
            PlanValidationError: If the structure is malformed or inconsistent
        """
        raw_weeks = data.get("weeks") if isinstance(data, Mapping) else None
        if not isinstance(raw_weeks, list):
            raise PlanValidationError("Plan must contain a 'weeks' list")

        weeks = []
        for number, raw_week in enumerate(raw_weeks, start=1):
            try:
                tasks = tuple(
                    TaskDefinition(
                        id=str(raw["id"]),
                        name=str(raw["name"]),
                        owner=str(raw.get("owner", "")),
                        hours=float(raw.get("hours", 0)),
                        days=frozenset(int(d) for d in raw.get("days", [])),
                        deps=tuple(str(d) for d in raw.get("deps") or []),
                        week=number,
                    )
                    for raw in raw_week.get("tasks", [])
                )
                weeks.append(
                    WeekDefinition(
                        number=number,
                        name=str(raw_week.get("name", f"Week {number}")),
                        days=tuple(int(d) for d in raw_week.get("days", [])),
                        tasks=tasks,
                    )
                )
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise PlanValidationError(
                    f"Invalid task definition in week {number}: {e}",
                    {"week": number},
                ) from e

        return cls(weeks)

    @property
    def weeks(self) -> tuple[WeekDefinition, ...]:
        return self._weeks

    @property
    def total_tasks(self) -> int:
        return len(self._tasks)

    def get_task(self, task_id: str) -> TaskDefinition | None:
        return self._tasks.get(task_id)

    def all_tasks(self) -> list[TaskDefinition]:
        return list(self._tasks.values())

    def tasks_for_day(self, day: int) -> list[ScheduledTask]:
        """Return the tasks scheduled on a phase day, in plan order.

        Only tasks of the week that contains the day are considered.
        """
        week = week_for_day(day)
        if week > len(self._weeks):
            return []

        return [
            ScheduledTask(definition=task, week=week, day=day)
            for task in self._weeks[week - 1].tasks
            if day in task.days
        ]


def load_plan(path: str | Path | None = None) -> PhasePlan:
    """Load a plan from a YAML/JSON file, or the built-in plan when path is None.

    Raises:
        ConfigLoadError: If the file is missing or cannot be parsed
        PlanValidationError: If the plan content is inconsistent
    """
    if path is None:
        return PhasePlan.from_dict(DEFAULT_PLAN)

    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigLoadError(f"Plan file not found: {path}", {"path": str(path)}) from e
    except (OSError, yaml.YAMLError) as e:
        raise ConfigLoadError(f"Failed to read plan file {path}: {e}", {"path": str(path)}) from e

    return PhasePlan.from_dict(data or {})


def load_plan_or_empty(path: str | Path | None = None) -> PhasePlan:
    """Load a plan, falling back to an empty plan on any ConfigLoadError."""
    try:
        return load_plan(path)
    except ConfigLoadError as e:
        logger.warning(f"Failed to load plan configuration: {e.message}")
        return PhasePlan.empty()
