"""
Cancellation token shared by the IPC server, the emergency hotkey and the agent loop.
"""
import threading


class ExecutionStopped(Exception):
    """Raised when a running session observes the stop signal."""

    def __init__(self, message: str = "Execution stopped by user"):
        super().__init__(message)


class StopSignal:
    """Thread-safe stop flag. Only the session controller clears it."""

    def __init__(self):
        self._event = threading.Event()

    def trigger(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    def is_set(self) -> bool:
        return self._event.is_set()

    def raise_if_set(self) -> None:
        if self._event.is_set():
            raise ExecutionStopped()

    def wait(self, timeout: float) -> bool:
        """Block up to `timeout` seconds; True if the signal was set."""
        return self._event.wait(timeout)
