import asyncio
from typing import Optional

import websockets
from websockets.exceptions import WebSocketException

from core.settings import get_socket_path
from ipc.protocol import (
    EXECUTE,
    LEARN_COMMANDS,
    STATUS,
    STOP,
    IpcCommand,
    IpcResponse,
    ProtocolError,
)

DEFAULT_TIMEOUT_SECONDS = 10.0


class DaemonNotRunningError(Exception):
    """Raised when no daemon is listening on the socket."""

    def __init__(self, message: str = "Daemon is not running"):
        super().__init__(message)


class IpcCommandError(Exception):
    """Raised when the daemon answers with a failure response or cannot be talked to."""


async def send_command(command: IpcCommand, socket_path: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> IpcResponse:
    """Send one command and return the daemon's single response.

    Raises:
        DaemonNotRunningError: If the socket is missing or refuses connections
        IpcCommandError: If the daemon cannot be reached or does not answer properly
    """
    socket_path = socket_path or get_socket_path()

    async def _exchange():
        async with websockets.unix_connect(socket_path, ping_interval=None) as websocket:
            await websocket.send(command.to_json())
            return IpcResponse.from_json(await websocket.recv())

    try:
        return await asyncio.wait_for(_exchange(), timeout=timeout)
    except (FileNotFoundError, ConnectionRefusedError) as e:
        raise DaemonNotRunningError() from e
    # TimeoutError is an OSError subclass, so it is matched first.
    except asyncio.TimeoutError as e:
        raise IpcCommandError(f"Daemon did not respond within {timeout:g}s") from e
    except ProtocolError as e:
        raise IpcCommandError(f"Invalid response from daemon: {e}") from e
    except WebSocketException as e:
        raise IpcCommandError(f"Invalid response from daemon: {e}") from e
    except OSError as e:
        raise IpcCommandError(f"Could not connect to daemon at {socket_path}: {e}") from e


def _checked(response: IpcResponse) -> str:
    if not response.success:
        raise IpcCommandError(response.message)
    return response.message


async def send_execute_command(text: str, socket_path: Optional[str] = None) -> str:
    return _checked(await send_command(IpcCommand(EXECUTE, text), socket_path))


async def send_status_command(socket_path: Optional[str] = None) -> str:
    return _checked(await send_command(IpcCommand(STATUS), socket_path))


async def send_stop_command(socket_path: Optional[str] = None) -> str:
    return _checked(await send_command(IpcCommand(STOP), socket_path))


async def send_learn_command(action: str, socket_path: Optional[str] = None) -> str:
    """Send a learning command; `action` is start, stop, status, finish or clear."""
    command = action if action.startswith("learn_") else f"learn_{action}"
    if command not in LEARN_COMMANDS:
        raise ValueError(f"Unknown learning action: {action!r}")
    return _checked(await send_command(IpcCommand(command), socket_path))


async def is_daemon_running(socket_path: Optional[str] = None, timeout: float = 2.0) -> bool:
    """Return True when a daemon answers a status request on the socket."""
    try:
        response = await send_command(IpcCommand(STATUS), socket_path, timeout=timeout)
    except (DaemonNotRunningError, IpcCommandError):
        return False
    return response.success
