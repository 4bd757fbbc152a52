from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, List, Optional, Tuple
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..agent.orchestrator import AgentBusyError, AgentController
from ..models import AgentRun, RunLog, get_db, init_db
from ..profile import AppSettings, UserProfile
from ..storage import ProfileStore


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    yield


app = FastAPI(lifespan=lifespan)

controller = AgentController()


def get_controller() -> AgentController:
    return controller


class StartAgentRequest(BaseModel):
    url: str


class AgentStatusResponse(BaseModel):
    status: str
    url: str
    running: bool
    log_count: int


class LogEntryResponse(BaseModel):
    timestamp: datetime
    message: str


class FieldResponse(BaseModel):
    id: str
    type: str
    sub_kind: str
    label: str
    value: str
    rect: Optional[Tuple[float, float, float, float]] = None


class RunSummary(BaseModel):
    id: str
    start_url: str
    status: str
    status_reason: str | None
    started_at: datetime
    finished_at: datetime | None


class RunLogEntry(BaseModel):
    timestamp: datetime
    level: str
    message: str


def _status_response(agent: AgentController) -> AgentStatusResponse:
    view = agent.status()
    return AgentStatusResponse(
        status=view.status.value,
        url=view.url,
        running=agent.running,
        log_count=len(view.logs),
    )


@app.post("/agent/start", response_model=AgentStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_agent(payload: StartAgentRequest, agent: AgentController = Depends(get_controller)):
    try:
        agent.start(payload.url)
    except AgentBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _status_response(agent)


@app.post("/agent/stop", response_model=AgentStatusResponse)
async def stop_agent(agent: AgentController = Depends(get_controller)):
    agent.stop()
    return _status_response(agent)


@app.get("/agent/status", response_model=AgentStatusResponse)
async def agent_status(agent: AgentController = Depends(get_controller)):
    return _status_response(agent)


@app.get("/agent/logs", response_model=List[LogEntryResponse])
async def agent_logs(agent: AgentController = Depends(get_controller)):
    return [LogEntryResponse(timestamp=entry.timestamp, message=entry.message) for entry in agent.status().logs]


@app.get("/agent/fields", response_model=List[FieldResponse])
async def agent_fields(agent: AgentController = Depends(get_controller)):
    """Field set with live rectangles, for drawing an overlay."""
    fields = await agent.current_fields()
    return [
        FieldResponse(
            id=f.id,
            type=f.type,
            sub_kind=f.sub_kind,
            label=f.label,
            value=f.value,
            rect=f.rect,
        )
        for f in fields
    ]


@app.get("/profile")
def get_profile(db: Session = Depends(get_db)) -> dict[str, Any]:
    return ProfileStore(db).get_profile().model_dump(by_alias=True)


@app.put("/profile")
def put_profile(profile: UserProfile, db: Session = Depends(get_db)) -> dict[str, Any]:
    return ProfileStore(db).save_profile(profile).model_dump(by_alias=True)


@app.get("/settings")
def get_app_settings(db: Session = Depends(get_db)) -> dict[str, Any]:
    return ProfileStore(db).get_settings().model_dump(by_alias=True)


@app.put("/settings")
def put_app_settings(app_settings: AppSettings, db: Session = Depends(get_db)) -> dict[str, Any]:
    return ProfileStore(db).save_settings(app_settings).model_dump(by_alias=True)


@app.delete("/storage", status_code=status.HTTP_204_NO_CONTENT)
def clear_storage(db: Session = Depends(get_db)) -> None:
    ProfileStore(db).clear_all()


@app.get("/api/runs", response_model=List[RunSummary])
def list_runs(db: Session = Depends(get_db)):
    runs = db.query(AgentRun).order_by(AgentRun.started_at.desc()).limit(50).all()
    return [
        RunSummary(
            id=str(r.id),
            start_url=r.start_url,
            status=r.status,
            status_reason=r.status_reason,
            started_at=r.started_at,
            finished_at=r.finished_at,
        )
        for r in runs
    ]


@app.get("/api/runs/{run_id}/logs", response_model=List[RunLogEntry])
def list_run_logs(run_id: UUID, db: Session = Depends(get_db)):
    run = db.get(AgentRun, run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found")

    logs = (
        db.query(RunLog)
        .filter(RunLog.run_id == run_id)
        .order_by(RunLog.created_at.asc())
        .all()
    )
    return [RunLogEntry(timestamp=log.created_at, level=log.level, message=log.message) for log in logs]
