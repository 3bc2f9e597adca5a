"""
Checks for session control, daemon state and the emergency stop hotkey.

Usage:
    python tests/test_sessions.py
"""

import asyncio
import os
import sys
import time
from datetime import datetime

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT_DIR)

from agents.computer_use.agent import IterationLimitExceeded
from core.sessions import BUSY_MESSAGE, SessionBusyError, SessionController
from core.state import AppState, DaemonState
from core.stop_signal import ExecutionStopped, StopSignal
from integrations.hotkey import EmergencyStop


class _WaitingAgent:
    """Runs until the stop signal is set, like a long session."""

    def __init__(self, stop_signal):
        self.stop_signal = stop_signal
        self.commands = []

    async def execute_command(self, text):
        self.commands.append(text)
        while True:
            self.stop_signal.raise_if_set()
            await asyncio.sleep(0.01)


class _ImmediateAgent:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    async def execute_command(self, text):
        if self.error is not None:
            raise self.error
        return self.result


def test_execute_runs_in_background_and_records_result() -> None:
    async def _run():
        state = DaemonState()
        controller = SessionController(_ImmediateAgent(result="Opened Safari"), StopSignal(), state)
        assert await controller.execute("open safari") == "Command execution started"
        assert state.state is AppState.WORKING and state.detail == "open safari"
        await controller.wait()
        return state

    state = asyncio.run(_run())
    assert state.state is AppState.IDLE
    assert state.last_outcome == "Opened Safari"


def test_second_execute_is_rejected_while_busy() -> None:
    async def _run():
        stop_signal = StopSignal()
        agent = _WaitingAgent(stop_signal)
        controller = SessionController(agent, stop_signal, DaemonState())
        await controller.execute("first")
        await asyncio.sleep(0.02)
        try:
            await controller.execute("second")
        except SessionBusyError as e:
            assert str(e) == BUSY_MESSAGE
        else:
            raise AssertionError("expected SessionBusyError")
        assert await controller.stop() == "Emergency stop triggered"
        assert not controller.is_busy
        return agent, controller

    agent, controller = asyncio.run(_run())
    assert agent.commands == ["first"]
    assert controller.state.state is AppState.IDLE
    assert controller.state.last_outcome == "Cancelled: first"


class _BlockingWaitAgent:
    """Spends its session in a blocking wait on a worker thread, like a Wait action."""

    def __init__(self, stop_signal):
        self.stop_signal = stop_signal
        self.commands = []

    async def execute_command(self, text):
        self.commands.append(text)
        await asyncio.to_thread(self.stop_signal.wait, 10.0)
        self.stop_signal.raise_if_set()
        return f"finished {text}"


def test_execute_is_accepted_right_after_stop() -> None:
    async def _run():
        stop_signal = StopSignal()
        agent = _BlockingWaitAgent(stop_signal)
        state = DaemonState()
        controller = SessionController(agent, stop_signal, state)
        await controller.execute("first")
        await asyncio.sleep(0.02)

        await controller.stop()
        assert not controller.is_busy
        assert state.state is AppState.IDLE
        assert state.last_outcome == "Cancelled: first"

        assert await controller.execute("second") == "Command execution started"
        assert state.state is AppState.WORKING and state.detail == "second"
        await controller.stop()
        return agent

    started = time.monotonic()
    agent = asyncio.run(_run())
    assert agent.commands == ["first", "second"]
    assert time.monotonic() - started < 5.0


def test_stop_gives_up_on_a_stuck_session() -> None:
    class _StuckAgent:
        async def execute_command(self, text):
            await asyncio.sleep(10)

    async def _run():
        state = DaemonState()
        controller = SessionController(_StuckAgent(), StopSignal(), state, stop_timeout=0.05)
        await controller.execute("stuck")
        assert await controller.stop() == "Emergency stop triggered"
        assert controller.is_busy
        assert state.state is AppState.WORKING
        controller._task.cancel()
        await controller.wait()

    asyncio.run(_run())


def test_stop_signal_is_cleared_before_a_new_session() -> None:
    async def _run():
        stop_signal = StopSignal()
        agent = _WaitingAgent(stop_signal)
        controller = SessionController(agent, stop_signal, DaemonState())
        await controller.stop()
        assert stop_signal.is_set()
        await controller.execute("after stop")
        assert not stop_signal.is_set()
        await asyncio.sleep(0.05)
        assert controller.is_busy
        await controller.stop()

    asyncio.run(_run())


def test_stop_when_idle_succeeds() -> None:
    controller = SessionController(_ImmediateAgent(), StopSignal(), DaemonState())
    assert asyncio.run(controller.stop()) == "Emergency stop triggered"
    assert controller.state.state is AppState.IDLE


def test_failures_are_recorded_in_state() -> None:
    async def _run(error):
        controller = SessionController(_ImmediateAgent(error=error), StopSignal(), DaemonState())
        await controller.execute("go")
        await controller.wait()
        return controller.state

    state = asyncio.run(_run(RuntimeError("model unreachable")))
    assert state.state is AppState.ERROR
    assert state.detail == "Failed to execute command: model unreachable"

    state = asyncio.run(_run(IterationLimitExceeded(50)))
    assert state.state is AppState.ERROR
    assert state.detail == "Maximum iterations reached (50)"

    state = asyncio.run(_run(ExecutionStopped()))
    assert state.state is AppState.IDLE


def test_empty_command_is_rejected() -> None:
    controller = SessionController(_ImmediateAgent(), StopSignal(), DaemonState())
    try:
        asyncio.run(controller.execute("   "))
    except ValueError:
        return
    raise AssertionError("expected ValueError")


def test_action_history_keeps_five_most_recent() -> None:
    state = DaemonState()
    state.set_working("fill form")
    for index in range(7):
        state.add_action(f"step {index}", timestamp=datetime(2026, 1, 1, 9, 30, index))
    history = state.history()
    assert len(history) == 5
    assert history[0].description == "step 6"
    assert history[0].format() == "09:30:06 | fill form | step 6"
    text = state.status_text()
    assert text.startswith("Daemon is running")
    assert "working (fill form)" in text
    assert "step 2" in text and "step 1" not in text


def test_emergency_stop_hotkey_triggers_signal() -> None:
    registered = {}

    class _FakeListener:
        def __init__(self, hotkeys):
            registered.update(hotkeys)
            self.started = False

        def start(self):
            self.started = True

        def stop(self):
            self.started = False

    stop_signal = StopSignal()
    state = DaemonState()
    state.set_working("long task")
    hotkey = EmergencyStop(stop_signal, hotkey="<cmd>+<shift>+<esc>", listener_factory=_FakeListener)
    assert hotkey.start()
    registered["<cmd>+<shift>+<esc>"]()
    assert stop_signal.is_set()
    # The session controller records the cancellation, not the hotkey thread.
    assert state.state is AppState.WORKING
    hotkey.stop()


def test_hotkey_registration_failure_is_not_fatal() -> None:
    def _broken_factory(hotkeys):
        raise OSError("no accessibility permission")

    hotkey = EmergencyStop(StopSignal(), hotkey="<cmd>+<shift>+<esc>", listener_factory=_broken_factory)
    assert not hotkey.start()
    hotkey.stop()


if __name__ == "__main__":
    test_execute_runs_in_background_and_records_result()
    test_second_execute_is_rejected_while_busy()
    test_execute_is_accepted_right_after_stop()
    test_stop_gives_up_on_a_stuck_session()
    test_stop_signal_is_cleared_before_a_new_session()
    test_stop_when_idle_succeeds()
    test_failures_are_recorded_in_state()
    test_empty_command_is_rejected()
    test_action_history_keeps_five_most_recent()
    test_emergency_stop_hotkey_triggers_signal()
    test_hotkey_registration_failure_is_not_fatal()
    print("[test_sessions] All checks passed.")
