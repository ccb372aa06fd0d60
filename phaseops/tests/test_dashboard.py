"""
Dashboard API tests.

This module tests the HTTP query surface and the WebSocket status stream.
"""

import json
from datetime import date

import pytest
from fastapi.testclient import TestClient

from phaseops.broadcaster import StatusBroadcaster
from phaseops.clock import JobScheduler, SystemClock
from phaseops.dashboard import create_application
from phaseops.outcomes import ScriptedOutcomeSource
from phaseops.reports import ReportStore, build_daily_report
from phaseops.team import TeamConfig


@pytest.fixture
def broadcaster(config, plan, clock):
    return StatusBroadcaster(
        config=config,
        plan=plan,
        clock=clock,
        outcomes=ScriptedOutcomeSource(default=0.5),
        report_store=ReportStore(config.reports_dir),
        team=TeamConfig(members={"kai": {"name": "Kai", "assignedTasks": ["7.1"]}}),
    )


@pytest.fixture
def client(config, broadcaster):
    """Create a test client with the periodic jobs disabled."""
    app = create_application(config, broadcaster=broadcaster, start_jobs=False)
    with TestClient(app) as test_client:
        yield test_client


def test_status(client):
    response = client.get("/api/status")

    assert response.status_code == 200
    data = response.json()
    assert data["phase"]["currentDay"] == 1
    assert data["tasks"]["today"] == 3
    assert data["system"]["health"] == "healthy"


def test_metrics(client):
    response = client.get("/api/metrics")

    assert response.status_code == 200
    assert set(response.json()) == {"performance", "targets", "realtime"}


def test_reports_empty(client):
    response = client.get("/api/reports")

    assert response.status_code == 200
    assert response.json() == []


def test_reports_listed_oldest_first(config, broadcaster, plan):
    store = ReportStore(config.reports_dir)
    for day in (2, 1):
        store.save(build_daily_report(day, 1, [], plan, date(2025, 10, day)))

    app = create_application(config, broadcaster=broadcaster, start_jobs=False)
    with TestClient(app) as client:
        response = client.get("/api/reports")

    assert [r["date"] for r in response.json()] == ["2025-10-01", "2025-10-02"]
    assert response.json()[0]["summary"]["successRate"] == "0"


def test_team(client):
    response = client.get("/api/team")

    assert response.status_code == 200
    kai = response.json()["kai"]
    assert kai["name"] == "Kai"
    assert kai["status"] in {"online", "busy", "away", "offline"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["uptime"] == 0
    assert "timestamp" in data


def test_websocket_receives_initial_snapshot(client, broadcaster):
    with client.websocket_connect("/ws") as websocket:
        message = websocket.receive_json()

        assert message["type"] == "initial"
        assert message["data"]["phase"]["totalDays"] == 18
        assert broadcaster.observer_count == 1


def test_lifespan_seeds_completed_count(config, broadcaster, plan):
    store = ReportStore(config.reports_dir)
    report = build_daily_report(1, 1, [], plan, date(2025, 10, 1))
    data = report.to_dict()
    data["summary"].update(total=3, completed=3, successRate="100.0")
    store.path_for(report.date).parent.mkdir(parents=True)
    store.path_for(report.date).write_text(json.dumps(data))

    app = create_application(config, broadcaster=broadcaster, start_jobs=False)
    with TestClient(app) as client:
        response = client.get("/api/status")

    assert response.json()["tasks"]["completed"] == 3


def test_lifespan_starts_and_stops_jobs(config, plan):
    broadcaster = StatusBroadcaster(
        config=config,
        plan=plan,
        clock=SystemClock(),
        outcomes=ScriptedOutcomeSource(default=0.99),
        report_store=ReportStore(config.reports_dir),
    )
    scheduler = JobScheduler(broadcaster.clock)
    app = create_application(config, broadcaster=broadcaster, scheduler=scheduler)

    with TestClient(app):
        assert set(scheduler.jobs) == {"broadcast", "health-check", "task-progress"}

    assert scheduler.jobs == {}
