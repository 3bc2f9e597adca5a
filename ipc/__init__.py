"""
superctrl IPC - control plane between the CLI and the background daemon.

Websocket frames over a Unix domain socket, one request and one response per
connection.
"""
from ipc.protocol import IpcCommand, IpcResponse, ProtocolError
from ipc.server import IpcServer
from ipc.client import (
    DaemonNotRunningError,
    IpcCommandError,
    send_command,
    send_execute_command,
    send_status_command,
    send_stop_command,
    send_learn_command,
    is_daemon_running,
)
