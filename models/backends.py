"""
Model Backends - Vendor-neutral transcript types and backend interface.

The agent loop keeps its transcript as the turn types below; each backend
renders that transcript into its vendor's wire format and parses replies back
into `ModelReply`.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import httpx


class ModelTransportError(Exception):
    """Raised when a model request fails.

    Args:
        message: Human readable reason
        retryable: True for timeouts, connection errors and HTTP 429/5xx
    """

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


# ================================================================================
# TRANSCRIPT TYPES
# ================================================================================

@dataclass
class ToolCall:
    id: str
    name: str
    arguments: dict
    raw_arguments: dict = field(default_factory=dict)


@dataclass
class ModelReply:
    text: Optional[str] = None
    tool_calls: list = field(default_factory=list)
    raw: Any = None


@dataclass
class UserTurn:
    text: str
    image: str
    media_type: str = "image/png"


@dataclass
class AssistantTurn:
    text: Optional[str]
    tool_calls: list
    # Vendor payload replayed verbatim on the next request.
    raw: Any = None


@dataclass
class ToolResultTurn:
    call_id: str
    name: str
    success: bool
    error: Optional[str] = None
    image: Optional[str] = None
    media_type: str = "image/png"


Turn = Union[UserTurn, AssistantTurn, ToolResultTurn]


def group_turns(transcript):
    """Yield turns, with each run of consecutive tool results merged into one list.

    Both vendors expect all results for one assistant reply in a single user
    message.
    """
    pending = []
    for turn in transcript:
        if isinstance(turn, ToolResultTurn):
            pending.append(turn)
            continue
        if pending:
            yield pending
            pending = []
        yield turn
    if pending:
        yield pending


# ================================================================================
# BACKEND INTERFACE
# ================================================================================

class ModelBackend(ABC):
    """A vision-capable, tool-using model."""

    name = "base"
    tool_name = ""

    def __init__(self, model_name: str, timeout_seconds: float = 60.0):
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds

    async def generate(self, system_prompt: str, transcript: list, logical_size: tuple) -> ModelReply:
        """Send the transcript and return the parsed reply.

        Raises:
            ModelTransportError: On any transport, HTTP or response-shape failure
        """
        try:
            return await asyncio.wait_for(
                self._generate(system_prompt, transcript, logical_size),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ModelTransportError(
                f"{self.name} request timed out after {self.timeout_seconds:g}s", retryable=True
            ) from e
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise ModelTransportError(f"{self.name} connection failed: {e}", retryable=True) from e

    @abstractmethod
    async def _generate(self, system_prompt: str, transcript: list, logical_size: tuple) -> ModelReply:
        ...


DEFAULT_MODELS = {
    "gemini": "gemini-3-flash-preview",
    "anthropic": "claude-sonnet-4-20250514",
}


def create_backend(backend: str, api_key: str, model_name: Optional[str] = None, timeout_seconds: float = 60.0) -> ModelBackend:
    """Build the backend named in the settings ("gemini" or "anthropic")."""
    backend = (backend or "").strip().lower()
    if backend == "gemini":
        from models.gemini import GeminiBackend

        return GeminiBackend(api_key, model_name or DEFAULT_MODELS["gemini"], timeout_seconds)
    if backend in ("anthropic", "claude"):
        from models.claude import ClaudeBackend

        return ClaudeBackend(api_key, model_name or DEFAULT_MODELS["anthropic"], timeout_seconds)
    raise ValueError(f"Unknown model backend: {backend!r}")
