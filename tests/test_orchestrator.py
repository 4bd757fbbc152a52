import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dom_builder import DomBuilder

from job_copilot.agent.document import InMemoryDriver
from job_copilot.agent.machine import AgentState, AgentStatus
from job_copilot.agent.orchestrator import run_agent
from job_copilot.config import Settings
from job_copilot.models import AgentRun, Base, RunLog


@pytest.fixture
def session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    db = sessionmaker(bind=engine)()
    try:
        yield db
    finally:
        db.close()


class BrokenWatchDriver(InMemoryDriver):
    async def watch(self, callback):
        raise RuntimeError("observer bridge failed")


def test_fault_outside_a_tick_stops_the_agent_with_a_log_entry(session):
    state = AgentState()
    driver = BrokenWatchDriver(DomBuilder().snapshot())

    with pytest.raises(RuntimeError):
        asyncio.run(run_agent(driver, session, state=state, settings=Settings(tick_interval_ms=0)))

    assert state.status == AgentStatus.STOPPED
    assert "Error: observer bridge failed" in [entry.message for entry in state.logs]

    run = session.query(AgentRun).one()
    assert run.status == AgentStatus.STOPPED.value
    assert run.status_reason == "observer bridge failed"
    persisted = [log.message for log in session.query(RunLog).filter(RunLog.run_id == run.id)]
    assert "Error: observer bridge failed" in persisted


def test_successful_run_is_persisted(session):
    b = DomBuilder()
    b.el("p", text="Application received")

    run = asyncio.run(run_agent(InMemoryDriver(b.snapshot()), session, settings=Settings(tick_interval_ms=0)))

    assert run.status == AgentStatus.SUCCEEDED.value
    assert run.status_reason == "State changed to: [SUCCEEDED]"
