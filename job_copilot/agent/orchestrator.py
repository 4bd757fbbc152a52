from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..config import Settings
from ..models import AgentRun, SessionLocal, finish_run, log_run_event
from ..profile import AppSettings, UserProfile
from ..storage import ProfileStore
from .agent_loop import AgentLoop
from .browser import BrowserSession
from .document import DocumentDriver, InMemoryDriver
from .machine import AgentState, AgentStateView, AgentStatus, LogEntry
from .page_snapshot import PageSnapshot
from .scanner import ScannedField

_run_lock: asyncio.Lock | None = None
_run_lock_loop: asyncio.AbstractEventLoop | None = None


class AgentBusyError(RuntimeError):
    pass


def _get_run_lock() -> asyncio.Lock:
    """Ensure only one agent run executes per event loop.

    Playwright does not always behave well when multiple browser sessions are
    created concurrently in the same process. The lock is recreated if a new
    event loop is used (e.g., when calling from the CLI via asyncio.run).
    """

    global _run_lock, _run_lock_loop

    loop = asyncio.get_running_loop()
    if _run_lock is None or _run_lock_loop is not loop:
        _run_lock = asyncio.Lock()
        _run_lock_loop = loop

    return _run_lock


def _mirror_logs(session: Session, run: AgentRun) -> Callable[[LogEntry], None]:
    def listener(entry: LogEntry) -> None:
        level = "error" if entry.message.startswith("Error:") else "info"
        log_run_event(session, run, level, entry.message, created_at=entry.timestamp)

    return listener


async def run_agent(
    driver: DocumentDriver,
    session: Session,
    start_url: str = "",
    state: Optional[AgentState] = None,
    profile: Optional[UserProfile] = None,
    app_settings: Optional[AppSettings] = None,
    settings: Optional[Settings] = None,
    on_loop: Optional[Callable[[AgentLoop], None]] = None,
) -> AgentRun:
    """Drive one AgentLoop to a terminal state, persisting the run and its log."""
    store = ProfileStore(session)
    run = AgentRun(start_url=start_url, status=AgentStatus.OBSERVING.value)
    session.add(run)
    session.commit()

    loop = AgentLoop(
        driver,
        state=state,
        profile=profile or store.get_profile(),
        app_settings=app_settings or store.get_settings(),
        settings=settings,
    )
    listener = _mirror_logs(session, run)
    for entry in loop.state.logs:
        listener(entry)
    loop.state.add_listener(listener)
    if on_loop is not None:
        on_loop(loop)
    try:
        status = await loop.run(start_url)
    except Exception as exc:
        logging.exception("agent_run_failed run=%s", run.id)
        if not loop.state.is_terminal:
            loop.state.add_log(f"Error: {exc}")
            loop.state.set_status(AgentStatus.STOPPED)
        finish_run(session, run, AgentStatus.STOPPED.value, reason=str(exc))
        raise
    finally:
        loop.state.remove_listener(listener)

    reason = loop.state.logs[-1].message if loop.state.logs else None
    finish_run(session, run, status.value, reason=reason)
    session.refresh(run)
    logging.info("agent_run_finished run=%s status=%s", run.id, run.status)
    return run


async def run_autofill_async(
    url: str,
    state: Optional[AgentState] = None,
    on_loop: Optional[Callable[[AgentLoop], None]] = None,
    browser_factory: Callable[[], BrowserSession] = BrowserSession,
) -> AgentRun:
    """Open the page in a browser and autofill it until done or stopped."""
    run_lock = _get_run_lock()

    async with run_lock:
        db = SessionLocal()
        try:
            async with browser_factory() as browser:
                await browser.goto(url)
                return await run_agent(browser.driver(), db, start_url=url, state=state, on_loop=on_loop)
        finally:
            db.close()


async def run_snapshot_async(
    snapshot: PageSnapshot,
    profile: Optional[UserProfile] = None,
    settings: Optional[Settings] = None,
) -> tuple[AgentRun, InMemoryDriver]:
    """Dry run against a saved snapshot; nothing outside the snapshot is touched."""
    run_lock = _get_run_lock()

    async with run_lock:
        db = SessionLocal()
        try:
            driver = InMemoryDriver(snapshot)
            run = await run_agent(driver, db, start_url=snapshot.url, profile=profile, settings=settings)
            return run, driver
        finally:
            db.close()


class AgentController:
    """Start/stop control of a single background agent for the HTTP surface."""

    def __init__(self, runner: Callable[..., "asyncio.Future[AgentRun]"] = run_autofill_async) -> None:
        self.runner = runner
        self.state = AgentState()
        self.loop: Optional[AgentLoop] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _attach(self, loop: AgentLoop) -> None:
        self.loop = loop

    def start(self, url: str) -> None:
        if self.running:
            raise AgentBusyError("an agent run is already in progress")
        self.state.reset()
        self.state.start(url)
        self.loop = None
        self._task = asyncio.create_task(self.runner(url, state=self.state, on_loop=self._attach))
        self._task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logging.error("agent_controller_run_failed reason=%r", exc)
            if not self.state.is_terminal:
                self.state.add_log(f"Error: {exc}")
                self.state.set_status(AgentStatus.STOPPED)

    def stop(self) -> bool:
        # the loop shares self.state; its scheduler exits on the next interval
        return self.state.stop()

    def status(self) -> AgentStateView:
        return self.state.view()

    async def current_fields(self) -> List[ScannedField]:
        if self.loop is None:
            return []
        return await self.loop.refresh()
