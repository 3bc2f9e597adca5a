"""
Daemon state shown by `superctrl status`: current activity plus recent actions.
"""
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

MAX_ACTION_HISTORY = 5


class AppState(Enum):
    IDLE = "idle"
    WORKING = "working"
    ERROR = "error"


@dataclass(frozen=True)
class ActionRecord:
    timestamp: datetime
    command: str
    description: str

    def format(self) -> str:
        return f"{self.timestamp:%H:%M:%S} | {self.command} | {self.description}"


class DaemonState:
    """Thread-safe holder for the displayed daemon state."""

    def __init__(self, max_history: int = MAX_ACTION_HISTORY):
        self._lock = threading.Lock()
        self._state = AppState.IDLE
        self._detail: Optional[str] = None
        self._history = deque(maxlen=max_history)
        self._last_outcome: Optional[str] = None

    @property
    def state(self) -> AppState:
        with self._lock:
            return self._state

    @property
    def detail(self) -> Optional[str]:
        """The running command, or the error message."""
        with self._lock:
            return self._detail

    @property
    def last_outcome(self) -> Optional[str]:
        with self._lock:
            return self._last_outcome

    def set_working(self, command: str) -> None:
        with self._lock:
            self._state = AppState.WORKING
            self._detail = command

    def set_idle(self, outcome: Optional[str] = None) -> None:
        with self._lock:
            self._state = AppState.IDLE
            self._detail = None
            if outcome is not None:
                self._last_outcome = outcome

    def set_error(self, message: str) -> None:
        with self._lock:
            self._state = AppState.ERROR
            self._detail = message
            self._last_outcome = message

    def add_action(self, description: str, command: Optional[str] = None, timestamp: Optional[datetime] = None) -> None:
        """Record an action; `command` defaults to the one currently running."""
        with self._lock:
            if command is None:
                command = self._detail if self._state is AppState.WORKING else ""
            self._history.appendleft(ActionRecord(timestamp or datetime.now(), command or "", description))

    def history(self) -> list:
        """Most recent action first."""
        with self._lock:
            return list(self._history)

    def status_text(self) -> str:
        with self._lock:
            lines = ["Daemon is running"]
            if self._state is AppState.WORKING:
                lines.append(f"State: working ({self._detail})")
            elif self._state is AppState.ERROR:
                lines.append(f"State: error ({self._detail})")
            else:
                lines.append("State: idle")
            if self._last_outcome:
                lines.append(f"Last result: {self._last_outcome}")
            if self._history:
                lines.append("Recent actions:")
                lines.extend(f"  {record.format()}" for record in self._history)
            return "\n".join(lines)
