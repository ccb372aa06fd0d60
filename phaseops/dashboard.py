"""Status dashboard API.

Serves the broadcaster's snapshots over HTTP and pushes live updates to
WebSocket clients. The periodic broadcaster jobs run on a JobScheduler
started in the application lifespan.

Run with:
    phaseops dashboard --port 3000
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from phaseops import __version__
from phaseops.broadcaster import StatusBroadcaster
from phaseops.clock import JobScheduler, SystemClock
from phaseops.config import PhaseOpsConfig
from phaseops.outcomes import RandomOutcomeSource
from phaseops.plan import load_plan_or_empty
from phaseops.reports import ReportStore
from phaseops.team import load_team_or_empty

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    uptime: int
    timestamp: str


def build_broadcaster(config: PhaseOpsConfig) -> StatusBroadcaster:
    """Create a broadcaster wired to the system clock and on-disk state."""
    return StatusBroadcaster(
        config=config,
        plan=load_plan_or_empty(config.plan_file),
        clock=SystemClock(),
        outcomes=RandomOutcomeSource(),
        report_store=ReportStore(config.reports_dir),
        team=load_team_or_empty(config.team_file),
    )


def create_application(
    config: PhaseOpsConfig,
    broadcaster: StatusBroadcaster | None = None,
    scheduler: JobScheduler | None = None,
    start_jobs: bool = True,
) -> FastAPI:
    """
    Create and configure the dashboard application.

    Args:
        config: Run configuration
        broadcaster: Status broadcaster (built from config if None)
        scheduler: Scheduler for the broadcaster jobs (created if None)
        start_jobs: Whether the lifespan registers and runs the periodic jobs

    Returns:
        FastAPI: Configured application instance
    """
    broadcaster = broadcaster or build_broadcaster(config)
    scheduler = scheduler or JobScheduler(broadcaster.clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        broadcaster.seed_from_reports(broadcaster.report_store.list_reports())
        runner: asyncio.Task | None = None

        if start_jobs:
            broadcaster.register_jobs(scheduler)
            runner = asyncio.create_task(scheduler.run_forever())
            logger.info(
                f"Dashboard jobs started: {', '.join(scheduler.jobs)}"
            )

        yield

        if runner is not None:
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass
            for name in list(scheduler.jobs):
                scheduler.remove_job(name)
            logger.info("Dashboard jobs stopped")

    app = FastAPI(
        title="PhaseOps Dashboard",
        description="Live status for the daily task cycle",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.broadcaster = broadcaster
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/api/status")
    async def get_status() -> dict[str, Any]:
        return broadcaster.get_system_status()

    @app.get("/api/metrics")
    async def get_metrics() -> dict[str, Any]:
        return broadcaster.get_metrics()

    @app.get("/api/reports")
    async def get_reports() -> list[dict[str, Any]]:
        return [report.to_dict() for report in broadcaster.report_store.list_reports()]

    @app.get("/api/team")
    async def get_team() -> dict[str, Any]:
        return broadcaster.get_team_status()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(**broadcaster.health_report())

    @app.websocket("/ws")
    async def status_stream(websocket: WebSocket) -> None:
        await websocket.accept()
        await broadcaster.connect(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            broadcaster.disconnect(websocket)

    return app
