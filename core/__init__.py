"""
Core utilities and settings for superctrl.
"""
from core.settings import (
    ConfigError,
    get_api_key,
    get_socket_path,
    get_model_config,
    get_max_iterations,
    get_request_timeout,
    get_screen_size,
    set_screen_size,
    get_screenshot_format,
    get_emergency_stop_hotkey,
    get_personalization_config,
)
from core.stop_signal import ExecutionStopped, StopSignal
from core.state import ActionRecord, AppState, DaemonState
