"""
Session control for the daemon: start, stop and report on agent sessions.
"""
import asyncio
from typing import Optional

from agents.computer_use.agent import IterationLimitExceeded
from core.state import DaemonState
from core.stop_signal import ExecutionStopped, StopSignal

EXECUTION_STARTED_MESSAGE = "Command execution started"
EMERGENCY_STOP_MESSAGE = "Emergency stop triggered"
BUSY_MESSAGE = "A command is already running"
STOP_TIMEOUT_SECONDS = 5.0


class SessionBusyError(Exception):
    """Raised when Execute arrives while a session is running."""


class SessionController:
    """Runs at most one agent session at a time.

    Args:
        agent: Object with `async execute_command(text) -> str`
        stop_signal: StopSignal shared with the agent and the hotkey
        state: DaemonState updated as sessions start and finish
        stop_timeout: Seconds `stop` waits for the session to finish
    """

    def __init__(self, agent, stop_signal: StopSignal, state: DaemonState, stop_timeout: float = STOP_TIMEOUT_SECONDS):
        self.agent = agent
        self.stop_signal = stop_signal
        self.state = state
        self.stop_timeout = stop_timeout
        self._task: Optional[asyncio.Task] = None

    @property
    def is_busy(self) -> bool:
        return self._task is not None and not self._task.done()

    async def execute(self, text: Optional[str]) -> str:
        """Start a session in the background and return immediately."""
        command = (text or "").strip()
        if not command:
            raise ValueError("Command text must not be empty")
        if self.is_busy:
            raise SessionBusyError(BUSY_MESSAGE)

        # A stop from an earlier session must not cancel this one.
        self.stop_signal.reset()
        self.state.set_working(command)
        print(f"[Daemon] Executing command: {command}")
        self._task = asyncio.create_task(self._run(command))
        return EXECUTION_STARTED_MESSAGE

    async def _run(self, command: str):
        try:
            result = await self.agent.execute_command(command)
        except ExecutionStopped as e:
            print(f"[Daemon] {e}")
            self.state.set_idle(outcome=f"Cancelled: {command}")
        except IterationLimitExceeded as e:
            print(f"[Daemon] {e}")
            self.state.set_error(str(e))
        except Exception as e:
            print(f"[Daemon] Command failed: {e}")
            self.state.set_error(f"Failed to execute command: {e}")
        else:
            print(f"[Daemon] Command completed: {result}")
            self.state.set_idle(outcome=result)

    async def stop(self) -> str:
        """Trigger the stop signal and wait for the running session to end.

        Succeeds when idle too. Once this returns, a new Execute is accepted
        unless the session is stuck in a blocking call past `stop_timeout`.
        """
        self.stop_signal.trigger()
        print("[Daemon] Emergency stop triggered")
        task = self._task
        if task is not None and not task.done():
            done, _ = await asyncio.wait({task}, timeout=self.stop_timeout)
            if not done:
                print(f"[Daemon] Session still running {self.stop_timeout}s after stop")
                return EMERGENCY_STOP_MESSAGE
        self.state.set_idle()
        return EMERGENCY_STOP_MESSAGE

    def status(self) -> str:
        return self.state.status_text()

    async def wait(self):
        """Wait for the running session, if any, to finish."""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self):
        if self.is_busy:
            self.stop_signal.trigger()
            await self.wait()
