"""
IPC wire format: one JSON text frame each way per connection.

Request:  {"command": "execute", "text": "open safari"}
Response: {"success": true, "message": "Command execution started"}
"""
import json
from dataclasses import asdict, dataclass
from typing import Optional

EXECUTE = "execute"
STATUS = "status"
STOP = "stop"
LEARN_START = "learn_start"
LEARN_STOP = "learn_stop"
LEARN_STATUS = "learn_status"
LEARN_FINISH = "learn_finish"
LEARN_CLEAR = "learn_clear"

LEARN_COMMANDS = (LEARN_START, LEARN_STOP, LEARN_STATUS, LEARN_FINISH, LEARN_CLEAR)
COMMANDS = (EXECUTE, STATUS, STOP) + LEARN_COMMANDS

# Prefix of the failure message when a handler raises.
FAILURE_PREFIXES = {
    EXECUTE: "Failed to execute command",
    STATUS: "Failed to get status",
    STOP: "Failed to stop",
    LEARN_START: "Failed to start learning",
    LEARN_STOP: "Failed to stop learning",
    LEARN_STATUS: "Failed to get learning status",
    LEARN_FINISH: "Failed to finish learning",
    LEARN_CLEAR: "Failed to clear learning",
}


class ProtocolError(ValueError):
    """Raised for frames that are not a valid command or response."""


@dataclass(frozen=True)
class IpcCommand:
    command: str
    text: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw) -> "IpcCommand":
        try:
            payload = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise ProtocolError(f"malformed JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ProtocolError("expected a JSON object")

        command = payload.get("command")
        if command not in COMMANDS:
            raise ProtocolError(f"unknown command {command!r}")
        text = payload.get("text")
        if command == EXECUTE:
            if not isinstance(text, str) or not text.strip():
                raise ProtocolError("execute requires non-empty text")
        elif text is not None and not isinstance(text, str):
            raise ProtocolError("text must be a string")
        return cls(command=command, text=text)


@dataclass(frozen=True)
class IpcResponse:
    success: bool
    message: str

    @classmethod
    def ok(cls, message: str) -> "IpcResponse":
        return cls(success=True, message=message)

    @classmethod
    def failure(cls, message: str) -> "IpcResponse":
        return cls(success=False, message=message)

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw) -> "IpcResponse":
        try:
            payload = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise ProtocolError(f"malformed JSON: {e}") from e
        if not isinstance(payload, dict) or not isinstance(payload.get("success"), bool):
            raise ProtocolError("response must contain a boolean 'success'")
        return cls(success=payload["success"], message=str(payload.get("message", "")))
