from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from ..config import Settings, settings as default_settings
from ..profile import AppSettings, UserProfile
from .document import DocumentDriver
from .injector import Injector
from .labels import find_label
from .machine import AgentState, AgentStatus
from .matcher import find_rule, match_field
from .page_snapshot import PageSnapshot
from .scanner import ScannedField, SemanticKey, find_proceed_control, needs_value, scan_page_fields

FieldsListener = Callable[[List[ScannedField]], None]
Matcher = Callable[[ScannedField, UserProfile], Optional[str]]


class AgentLoop:
    """Observe -> plan -> execute -> navigate, one tick at a time.

    Ticks and out-of-band refreshes share a single-flight latch. A tick that
    arrives while another tick holds the latch is dropped; one that arrives
    during a refresh runs as soon as the latch is released. Refresh requests
    arriving while it is held collapse into one follow-up refresh, and that
    follow-up does not chase the mutations it reports itself.
    """

    def __init__(
        self,
        driver: DocumentDriver,
        state: Optional[AgentState] = None,
        profile: Optional[UserProfile] = None,
        app_settings: Optional[AppSettings] = None,
        settings: Optional[Settings] = None,
        matcher: Matcher = match_field,
    ) -> None:
        self.driver = driver
        self.state = state or AgentState()
        self.profile = profile or UserProfile()
        self.app_settings = app_settings or AppSettings()
        self.settings = settings or default_settings
        self.matcher = matcher
        self.injector = Injector(driver, click_settle_ms=self.settings.click_settle_ms)
        self.latest_fields: List[ScannedField] = []

        self._in_flight = False
        self._refresh_pending = False
        self._refreshing = False
        self._tick_pending = False
        self._filled_keys: Set[SemanticKey] = set()
        self._fields_listeners: List[FieldsListener] = []
        self._tasks: Set[asyncio.Task] = set()

    def add_fields_listener(self, listener: FieldsListener) -> None:
        self._fields_listeners.append(listener)

    # --- scheduling ------------------------------------------------------

    async def tick(self) -> bool:
        """Run one state-machine step unless another pass holds the latch.

        A tick that lands on a refresh pass is deferred until the latch is
        released; one that lands on another tick is dropped.
        """
        if not self.state.is_active:
            return False
        if self._in_flight:
            if self._refreshing:
                self._tick_pending = True
            return False
        await self._hold(self._tick_pass)
        await self._after_release(chased=False)
        return True

    def request_refresh(self) -> None:
        """Mutation hook: republish the field set without acting on it."""
        if self._in_flight:
            self._refresh_pending = True
            return
        self._spawn(self._guarded_refresh())

    async def refresh(self) -> List[ScannedField]:
        if self._in_flight:
            self._refresh_pending = True
            return list(self.latest_fields)
        await self._guarded_refresh()
        return list(self.latest_fields)

    async def _guarded_refresh(self) -> None:
        if self._in_flight:
            self._refresh_pending = True
            return
        await self._hold(self._refresh_pass, refreshing=True)
        await self._after_release(chased=False)

    async def _hold(self, pass_fn: Callable[[], Awaitable[None]], refreshing: bool = False) -> None:
        self._in_flight = True
        self._refreshing = refreshing
        try:
            await pass_fn()
        finally:
            self._in_flight = False
            self._refreshing = False

    async def _after_release(self, chased: bool) -> None:
        """Run what queued up behind the latch: a deferred tick, then one follow-up refresh.

        ``chased`` is set once a follow-up refresh has run; mutations reported
        by that pass itself are not chased again.
        """
        while True:
            if self._tick_pending:
                self._tick_pending = False
                if self.state.is_active:
                    await self._hold(self._tick_pass)
                    chased = False
                    continue
            if not self._refresh_pending:
                return
            self._refresh_pending = False
            if chased:
                return
            await self._hold(self._refresh_pass, refreshing=True)
            chased = True

    async def _tick_pass(self) -> None:
        try:
            await self._step()
        except Exception as exc:
            logging.exception("agent_tick_failed status=%s", self.state.status.value)
            self.state.add_log(f"Error: {exc}")
            self.state.set_status(AgentStatus.STOPPED)

    async def _refresh_pass(self) -> None:
        try:
            await self._observe()
        except Exception as exc:
            logging.warning("agent_refresh_failed reason=%r", exc)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, url: str = "") -> AgentStatus:
        """Tick every ``tick_interval_ms`` until the agent reaches a terminal state."""
        if self.state.status == AgentStatus.IDLE:
            self.state.start(url)
        await self.driver.watch(self.request_refresh)
        interval = self.settings.tick_interval_ms / 1000
        try:
            while self.state.is_active:
                self._spawn(self.tick())
                await asyncio.sleep(interval)
        finally:
            await self.driver.unwatch()
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
        return self.state.status

    def stop(self) -> None:
        """``run`` notices on its next interval and disconnects the watcher."""
        self.state.stop()

    # --- state machine ---------------------------------------------------

    async def _observe(self) -> tuple[PageSnapshot, List[ScannedField]]:
        snapshot = await self.driver.observe()
        fields = scan_page_fields(snapshot)
        self.latest_fields = fields
        for listener in list(self._fields_listeners):
            listener(fields)
        return snapshot, fields

    async def _step(self) -> None:
        if self.state.status != AgentStatus.OBSERVING:
            logging.debug("agent_tick_skipped status=%s", self.state.status.value)
            return

        snapshot, fields = await self._observe()
        pending = [
            field
            for field in fields
            if needs_value(field, snapshot) and field.semantic_key not in self._filled_keys
        ]
        logging.debug("agent_observe fields=%s pending=%s", len(fields), len(pending))

        if pending:
            if await self._fill_pending(pending):
                await self.driver.wait(self.settings.refill_settle_ms)
                self.state.set_status(AgentStatus.OBSERVING)
                return
            if self.state.is_terminal:
                return

        await self._proceed(snapshot)

    async def _fill_pending(self, pending: List[ScannedField]) -> bool:
        """Match and write; True when at least one field was written."""
        self.state.set_status(AgentStatus.PLANNING)
        plan = []
        for field in pending:
            value = self.matcher(field, self.profile)
            if value is None:
                continue
            rule = find_rule(field.label)
            logging.debug(
                "agent_plan field=%s label=%r rule=%s", field.id, field.label, rule.name if rule else None
            )
            plan.append((field, value))
        if not plan:
            self.state.add_log(f"No profile data for {len(pending)} empty field(s)")
            return False

        self.state.add_log(f"Matched {len(plan)} of {len(pending)} empty field(s)")
        self.state.set_status(AgentStatus.EXECUTING)
        written = 0
        for field, value in plan:
            if self.state.is_terminal:
                return False
            if await self.injector.fill(field.ref, value):
                written += 1
                self._filled_keys.add(field.semantic_key)
                self.state.add_log(f"Filled [{field.label}]")
                await self.driver.wait(self.settings.fill_settle_ms)
            else:
                logging.info("agent_fill_rejected field=%s label=%r", field.id, field.label)
        return written > 0

    async def _proceed(self, snapshot: PageSnapshot) -> None:
        control = find_proceed_control(snapshot, allow_submit=self.app_settings.auto_submit)
        if control is None:
            self.state.add_log("No proceed control found. Nothing left to do.")
            self.state.set_status(AgentStatus.SUCCEEDED)
            return

        self.state.add_log(f"Found navigation button: [{find_label(snapshot, control)}]")
        self.state.set_status(AgentStatus.NAVIGATING)
        if not await self.injector.click(snapshot.ref(control)):
            self.state.add_log("Failed to click button (blocked or hidden)")
            self.state.set_status(AgentStatus.STOPPED)
            return

        self.state.add_log("Clicked proceed control. Waiting for page load...")
        self._filled_keys.clear()
        await self.driver.wait(self.settings.navigation_settle_ms)
        self.state.set_status(AgentStatus.OBSERVING)
