"""
Computer Use Agent - Orchestration loop.

Alternates model requests and action execution until the model stops calling
tools, the iteration limit is reached, or the stop signal is set.
"""
import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Optional

from agents.computer_use.actions import ActionError, parse_tool_args, to_physical_action
from agents.computer_use.prompts import build_system_prompt
from agents.computer_use.scaling import DisplayGeometry
from agents.computer_use.screenshot import ScreenCaptureError
from core.stop_signal import ExecutionStopped, StopSignal
from models.backends import AssistantTurn, ModelTransportError, ToolResultTurn, UserTurn

MAX_ITERATIONS = 50
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1.0
STOP_POLL_SECONDS = 0.15


class IterationLimitExceeded(Exception):
    """Raised when a session uses all of its iterations without finishing."""

    def __init__(self, max_iterations: int):
        super().__init__(f"Maximum iterations reached ({max_iterations})")
        self.max_iterations = max_iterations


class SessionState:
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class Session:
    """One execute_command invocation and its transcript."""

    command: str
    transcript: list = field(default_factory=list)
    iterations: int = 0
    state: str = SessionState.RUNNING
    result: Optional[str] = None
    error: Optional[str] = None


class ComputerUseAgent:
    """Drives a model backend against the real display.

    Args:
        backend: A ModelBackend
        executor: ActionExecutor for physical input
        capture: ScreenCapture producing logical-size screenshots
        geometry: DisplayGeometry of the physical display
        stop_signal: Shared StopSignal
        max_iterations: Model requests allowed per session
        max_retries: Retries for retryable transport errors per request
        personalization: Optional text about the user added to the system prompt
        on_status: Optional callback (sync or async) receiving each action description
    """

    def __init__(
        self,
        backend,
        executor,
        capture,
        geometry: DisplayGeometry,
        stop_signal: StopSignal,
        max_iterations: int = MAX_ITERATIONS,
        max_retries: int = MAX_RETRIES,
        personalization=None,
        on_status=None,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ):
        self.backend = backend
        self.executor = executor
        self.capture = capture
        self.geometry = geometry
        self.stop_signal = stop_signal
        self.max_iterations = max_iterations
        self.max_retries = max_retries
        self.personalization = personalization
        self.on_status = on_status
        self.retry_delay = retry_delay
        self.session: Optional[Session] = None

    def _raise_if_stopped(self):
        self.stop_signal.raise_if_set()

    async def _set_status(self, text: str):
        print(f"[ComputerUseAgent] {text}")
        if self.on_status is None:
            return
        result = self.on_status(text)
        if inspect.isawaitable(result):
            await result

    async def execute_command(self, text: str) -> str:
        """Run one session for `text` and return the model's final reply.

        Raises:
            ExecutionStopped: The stop signal was set
            IterationLimitExceeded: The model never finished
            ModelTransportError: A model request failed after retries
            ScreenCaptureError: The initial screenshot failed
        """
        session = Session(command=text)
        self.session = session
        try:
            result = await self._run(session)
        except ExecutionStopped as e:
            session.state = SessionState.CANCELLED
            session.error = str(e)
            raise
        except Exception as e:
            session.state = SessionState.FAILED
            session.error = str(e)
            raise
        session.state = SessionState.COMPLETED
        session.result = result
        return result

    async def _run(self, session: Session) -> str:
        self._raise_if_stopped()
        logical_width, logical_height = self.geometry.logical_size
        system_prompt = build_system_prompt(
            logical_width,
            logical_height,
            self.backend.tool_name,
            personalization=self.personalization,
        )

        image = await asyncio.to_thread(self.capture.capture)
        session.transcript.append(UserTurn(text=session.command, image=image, media_type=self.capture.media_type))

        last_text = None
        for iteration in range(1, self.max_iterations + 1):
            self._raise_if_stopped()
            session.iterations = iteration
            reply = await self._request(system_prompt, session)
            self._raise_if_stopped()

            session.transcript.append(AssistantTurn(text=reply.text, tool_calls=list(reply.tool_calls), raw=reply.raw))
            if reply.text:
                last_text = reply.text

            if not reply.tool_calls:
                return reply.text or last_text or "Task completed"

            for call in reply.tool_calls:
                session.transcript.append(await self._run_tool_call(call))

        raise IterationLimitExceeded(self.max_iterations)

    # ================================================================================
    # MODEL REQUESTS
    # ================================================================================

    async def _request(self, system_prompt: str, session: Session):
        retries = 0
        while True:
            self._raise_if_stopped()
            try:
                return await self._request_once(system_prompt, session)
            except ModelTransportError as e:
                if not e.retryable or retries >= self.max_retries:
                    raise
                retries += 1
                print(f"[ComputerUseAgent] Model error: {e}. Retrying ({retries}/{self.max_retries})...")
                await asyncio.sleep(self.retry_delay)

    async def _request_once(self, system_prompt: str, session: Session):
        model_task = asyncio.create_task(
            self.backend.generate(system_prompt, list(session.transcript), self.geometry.logical_size)
        )
        try:
            while True:
                done, _ = await asyncio.wait({model_task}, timeout=STOP_POLL_SECONDS)
                if done:
                    return model_task.result()
                if self.stop_signal.is_set():
                    model_task.cancel()
                    await asyncio.gather(model_task, return_exceptions=True)
                    raise ExecutionStopped()
        except asyncio.CancelledError:
            model_task.cancel()
            raise

    # ================================================================================
    # TOOL EXECUTION
    # ================================================================================

    async def _run_tool_call(self, call) -> ToolResultTurn:
        error = None
        if call.name != self.backend.tool_name:
            error = f"Unknown tool: {call.name}"
        else:
            try:
                action = parse_tool_args(call.arguments)
                physical_action = to_physical_action(action, self.geometry)
                await self._set_status(action.describe())
                await asyncio.to_thread(self.executor.execute, physical_action)
            except ActionError as e:
                error = str(e)
                print(f"[ComputerUseAgent] Action failed: {error}")

        self._raise_if_stopped()

        image = None
        try:
            image = await asyncio.to_thread(self.capture.capture)
        except ScreenCaptureError as e:
            error = f"{error}; {e}" if error else str(e)

        return ToolResultTurn(
            call_id=call.id,
            name=call.name,
            success=error is None,
            error=error,
            image=image,
            media_type=self.capture.media_type,
        )
