from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Tuple


class AgentStatus(str, Enum):
    IDLE = "IDLE"
    OBSERVING = "OBSERVING"
    PLANNING = "PLANNING"
    EXECUTING = "EXECUTING"
    NAVIGATING = "NAVIGATING"
    # reserved for a future self-repair step; no transition enters it yet
    RECOVERING = "RECOVERING"
    SUCCEEDED = "SUCCEEDED"
    STOPPED = "STOPPED"


TERMINAL_STATUSES = frozenset({AgentStatus.SUCCEEDED, AgentStatus.STOPPED})


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    message: str


@dataclass(frozen=True)
class AgentStateView:
    status: AgentStatus
    logs: Tuple[LogEntry, ...]
    url: str


LogListener = Callable[[LogEntry], None]


class AgentState:
    """Status and append-only log of one agent, owned by the control loop.

    Terminal states (succeeded, stopped) ignore further transitions until
    ``start`` or ``reset`` is called.
    """

    def __init__(self) -> None:
        self.status = AgentStatus.IDLE
        self.url = ""
        self._logs: List[LogEntry] = []
        self._listeners: List[LogListener] = []

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status != AgentStatus.IDLE and not self.is_terminal

    @property
    def logs(self) -> Tuple[LogEntry, ...]:
        return tuple(self._logs)

    def add_listener(self, listener: LogListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: LogListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self, url: str = "") -> bool:
        if self.is_active:
            return False
        self.status = AgentStatus.OBSERVING
        self.url = url
        self._logs = []
        self.add_log("Agent active. Starting control loop...")
        return True

    def stop(self) -> bool:
        if self.is_terminal:
            return False
        self.status = AgentStatus.STOPPED
        self.add_log("Agent manually stopped.")
        return True

    def set_status(self, status: AgentStatus) -> bool:
        if self.is_terminal:
            logging.debug("agent_transition_ignored from=%s to=%s", self.status.value, status.value)
            return False
        self.status = status
        self.add_log(f"State changed to: [{status.value}]")
        return True

    def add_log(self, message: str) -> LogEntry:
        entry = LogEntry(timestamp=datetime.now(timezone.utc), message=message)
        self._logs.append(entry)
        logging.info("agent_log status=%s message=%s", self.status.value, message)
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception as exc:
                logging.warning("agent_log_listener_failed reason=%r", exc)
        return entry

    def reset(self) -> None:
        self.status = AgentStatus.IDLE
        self.url = ""
        self._logs = []

    def view(self) -> AgentStateView:
        return AgentStateView(status=self.status, logs=self.logs, url=self.url)
