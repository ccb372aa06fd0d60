"""Shared fixtures for phaseops tests."""

import dataclasses
from datetime import date, datetime, timezone

import pytest

from phaseops.clock import VirtualClock
from phaseops.config import PhaseOpsConfig
from phaseops.plan import load_plan


@pytest.fixture
def phase_start() -> date:
    return date(2025, 10, 1)


@pytest.fixture
def config(tmp_path, phase_start) -> PhaseOpsConfig:
    """Config writing all state under tmp_path."""
    return dataclasses.replace(
        PhaseOpsConfig(),
        phase_start=phase_start,
        reports_dir=tmp_path / "reports",
        state_dir=tmp_path / "state",
        team_file=tmp_path / "team.json",
        slack_webhook_url=None,
    )


@pytest.fixture
def clock() -> VirtualClock:
    """Virtual clock at 09:00 UTC on phase day 1."""
    return VirtualClock(datetime(2025, 10, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def plan():
    return load_plan()
