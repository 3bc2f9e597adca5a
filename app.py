import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from agents.computer_use import ActionExecutor, ComputerUseAgent, DisplayGeometry, ScreenCapture
from core.sessions import SessionController
from core.settings import (
    DEFAULT_SETTINGS_PATH,
    ConfigError,
    get_api_key,
    get_max_iterations,
    get_model_config,
    get_personalization_config,
    get_request_timeout,
    get_screen_size,
    get_screenshot_format,
    get_socket_path,
    set_screen_size,
)
from core.state import DaemonState
from core.stop_signal import StopSignal
from integrations.hotkey import EmergencyStop
from ipc.client import (
    DaemonNotRunningError,
    IpcCommandError,
    is_daemon_running,
    send_execute_command,
    send_learn_command,
    send_status_command,
    send_stop_command,
)
from ipc.server import IpcServer
from models.backends import create_backend

LEARN_ACTIONS = ("start", "stop", "status", "finish", "clear")
FALLBACK_SCREEN_SIZE = (1920, 1080)


async def _measure_screen_size(settings_path: str) -> tuple[int, int]:
    # Figure out dimensions of the user's screen and set it in settings.json.
    # Fallback to configured size if the display is unavailable at startup.
    def _pyautogui_size():
        import pyautogui

        size = pyautogui.size()
        return int(size[0]), int(size[1])

    try:
        screen_width, screen_height = await asyncio.wait_for(asyncio.to_thread(_pyautogui_size), timeout=2.0)
    except Exception as exc:
        try:
            screen_width, screen_height = get_screen_size(settings_path)
        except Exception:
            screen_width, screen_height = FALLBACK_SCREEN_SIZE
        print(
            f"[Daemon] Screen size unavailable at startup ({type(exc).__name__}: {exc}). "
            f"Using configured size {screen_width}x{screen_height}."
        )
        return screen_width, screen_height

    try:
        set_screen_size(screen_width, screen_height, settings_path)
    except OSError as exc:
        print(f"[Daemon] Could not store screen size: {exc}")
    return screen_width, screen_height


async def run_daemon(settings_path: str = DEFAULT_SETTINGS_PATH):
    """Start the daemon and serve IPC requests until interrupted.

    Raises:
        ConfigError: Missing API key, daemon already running, or socket bind failure
    """
    backend_name, model_name = get_model_config(settings_path)
    api_key = get_api_key(backend_name)
    socket_path = get_socket_path(settings_path)

    if await is_daemon_running(socket_path):
        raise ConfigError(f"Daemon is already running on {socket_path}")

    screen_width, screen_height = await _measure_screen_size(settings_path)
    geometry = DisplayGeometry.for_display(screen_width, screen_height)
    logical_width, logical_height = geometry.logical_size
    print(
        f"[Daemon] Display {screen_width}x{screen_height}, model sees {logical_width}x{logical_height} "
        f"(scale {geometry.scale:.4f})"
    )

    backend = create_backend(backend_name, api_key, model_name, get_request_timeout(settings_path))
    print(f"[Daemon] Model loaded - {backend.name}: {backend.model_name}")

    stop_signal = StopSignal()
    state = DaemonState()
    agent = ComputerUseAgent(
        backend=backend,
        executor=ActionExecutor(stop_signal=stop_signal),
        capture=ScreenCapture(logical_width, logical_height, get_screenshot_format(settings_path)),
        geometry=geometry,
        stop_signal=stop_signal,
        max_iterations=get_max_iterations(settings_path),
        personalization=get_personalization_config(settings_path)[0],
        on_status=state.add_action,
    )
    controller = SessionController(agent, stop_signal, state)

    server = IpcServer(
        socket_path,
        on_execute=controller.execute,
        on_status=controller.status,
        on_stop=controller.stop,
    )
    try:
        await server.start()
    except OSError as exc:
        raise ConfigError(f"Failed to bind socket {socket_path}: {exc}") from exc

    hotkey = EmergencyStop(stop_signal)
    hotkey.start()

    print("[Daemon] superctrl daemon running. Press Ctrl+C to exit.")
    try:
        await server.wait_forever()
    finally:
        hotkey.stop()
        await controller.shutdown()
        await server.stop()


async def run_client(args) -> int:
    try:
        if args.command == "execute":
            message = await send_execute_command(args.text)
        elif args.command == "status":
            message = await send_status_command()
        elif args.command == "stop":
            message = await send_stop_command()
        else:
            message = await send_learn_command(args.action)
    except DaemonNotRunningError as exc:
        print(f"Error: {exc}. Start it with `superctrl daemon`.", file=sys.stderr)
        return 1
    except IpcCommandError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(message)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="superctrl", description="Control your desktop with natural language")
    parser.add_argument("-e", "--execute", dest="execute_text", metavar="TEXT", help="Send a command to the daemon")
    subparsers = parser.add_subparsers(dest="command")

    execute = subparsers.add_parser("execute", help="Send a command to the daemon")
    execute.add_argument("text", nargs="+", help="Command text")
    subparsers.add_parser("status", help="Show daemon status")
    subparsers.add_parser("stop", help="Stop the running command")
    learn = subparsers.add_parser("learn", help="Control the learning subsystem")
    learn.add_argument("action", choices=LEARN_ACTIONS)
    subparsers.add_parser("daemon", help="Run the daemon in the foreground (default)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.execute_text is not None:
        args.command = "execute"
        args.text = args.execute_text
    elif args.command == "execute":
        args.text = " ".join(args.text)

    if args.command in (None, "daemon"):
        load_dotenv()
        logging.basicConfig(level=logging.ERROR)
        try:
            asyncio.run(run_daemon())
        except ConfigError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            print("[Daemon] Shutting down.")
        return 0

    return asyncio.run(run_client(args))


def run():
    sys.exit(main())


if __name__ == '__main__':
    run()
