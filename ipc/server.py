import asyncio
import os
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed

from ipc.protocol import (
    EXECUTE,
    FAILURE_PREFIXES,
    LEARN_CLEAR,
    LEARN_FINISH,
    LEARN_START,
    LEARN_STATUS,
    LEARN_STOP,
    STATUS,
    STOP,
    IpcCommand,
    IpcResponse,
    ProtocolError,
)

SOCKET_PERMISSIONS = 0o600

SUCCESS_MESSAGES = {
    EXECUTE: "Command execution started",
    STATUS: "Daemon is running",
    STOP: "Emergency stop triggered",
    LEARN_START: "Learning mode started",
    LEARN_STOP: "Learning mode stopped",
    LEARN_STATUS: "Learning status unavailable",
    LEARN_FINISH: "Learning session finished",
    LEARN_CLEAR: "Learning history cleared",
}


class IpcServer:
    """Serves one request/response exchange per connection on a Unix socket.

    Handlers may be plain callables or coroutine functions. A string returned
    by a handler becomes the response message.

    Args:
        socket_path: Filesystem path of the Unix socket
        on_execute: Called with the command text
        on_status: Called with no arguments
        on_stop: Called with no arguments
        learning_handlers: Optional map of learn_* command name to handler
    """

    def __init__(self, socket_path: str, on_execute, on_status, on_stop, learning_handlers: Optional[dict] = None):
        self.socket_path = socket_path
        self.on_execute = on_execute
        self.on_status = on_status
        self.on_stop = on_stop
        self.learning_handlers = dict(learning_handlers or {})
        self._server = None

    def _remove_socket_file(self):
        try:
            os.remove(self.socket_path)
        except FileNotFoundError:
            pass

    async def start(self):
        self._remove_socket_file()
        directory = os.path.dirname(self.socket_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        # Clients send one frame and wait for one reply; no keepalive needed.
        self._server = await websockets.unix_serve(self._handle_client, self.socket_path, ping_interval=None)
        os.chmod(self.socket_path, SOCKET_PERMISSIONS)
        print(f"[IpcServer] Listening on {self.socket_path}")

    async def stop(self):
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        self._remove_socket_file()
        print("[IpcServer] Stopped")

    async def wait_forever(self):
        await asyncio.Future()

    async def _handle_client(self, websocket):
        try:
            message = await websocket.recv()
        except ConnectionClosed:
            return
        response = await self.dispatch(message)
        try:
            await websocket.send(response.to_json())
        except ConnectionClosed:
            # Client went away before reading the reply.
            pass

    def _handler_for(self, command: IpcCommand):
        if command.command == EXECUTE:
            return self.on_execute, (command.text,)
        if command.command == STATUS:
            return self.on_status, ()
        if command.command == STOP:
            return self.on_stop, ()
        return self.learning_handlers.get(command.command), ()

    async def dispatch(self, message) -> IpcResponse:
        """Turn one raw request frame into a response. Never raises."""
        try:
            command = IpcCommand.from_json(message)
        except ProtocolError as e:
            return IpcResponse.failure(f"Invalid command: {e}")

        handler, args = self._handler_for(command)
        if handler is None:
            return IpcResponse.failure(f"{FAILURE_PREFIXES[command.command]}: learning mode is not available")

        try:
            result = handler(*args)
            if asyncio.iscoroutine(result):
                result = await result
        except Exception as e:
            print(f"[IpcServer] {command.command} failed: {e}")
            return IpcResponse.failure(f"{FAILURE_PREFIXES[command.command]}: {e}")

        if isinstance(result, str) and result:
            return IpcResponse.ok(result)
        return IpcResponse.ok(SUCCESS_MESSAGES[command.command])
