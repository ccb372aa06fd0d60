"""Team configuration loading.

The team file (``config/team-assignments.json`` by default; YAML is accepted
too) has the shape:

    {"team": {"aria": {"name": "Aria", "role": "...", "assignedTasks": ["1.1"]}},
     "taskAssignments": {"1.1": "aria"}}
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from phaseops.errors import ConfigLoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeamConfig:
    """Team members and task assignments.

    Attributes:
        members: Map of member id to member attributes
        task_assignments: Map of task id to member id
    """

    members: dict[str, dict[str, Any]] = field(default_factory=dict)
    task_assignments: dict[str, Any] = field(default_factory=dict)

    def assigned_tasks(self, member_id: str) -> list[str]:
        member = self.members.get(member_id, {})
        return list(member.get("assignedTasks") or [])


def load_team(path: Path) -> TeamConfig:
    """Load team configuration.

    Raises:
        ConfigLoadError: If the file is missing, unreadable or malformed
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigLoadError(f"Team file not found: {path}", {"path": str(path)}) from e
    except (OSError, yaml.YAMLError) as e:
        raise ConfigLoadError(f"Failed to read team file {path}: {e}", {"path": str(path)}) from e

    team = data.get("team") if isinstance(data, dict) else None
    if not isinstance(team, dict) or not all(isinstance(m, dict) for m in team.values()):
        raise ConfigLoadError(
            f"Team file {path} must contain a 'team' mapping of members",
            {"path": str(path)},
        )

    for member_id, member in team.items():
        if not isinstance(member.get("assignedTasks") or [], list):
            raise ConfigLoadError(
                f"Team member '{member_id}' in {path} must give assignedTasks as a list",
                {"path": str(path), "member": member_id},
            )

    return TeamConfig(
        members=team,
        task_assignments=dict(data.get("taskAssignments") or {}),
    )


def load_team_or_empty(path: Path) -> TeamConfig:
    """Load team configuration, falling back to an empty team on error."""
    try:
        return load_team(path)
    except ConfigLoadError as e:
        logger.warning(f"Failed to load team configuration: {e.message}")
        return TeamConfig()
