import json
import os
from typing import Optional, Tuple, Union

DEFAULT_SETTINGS_PATH = os.path.join(os.path.dirname(__file__), "..", "settings.json")

DEFAULT_SETTINGS = {
    "socket_path": "/tmp/superctrl.sock",
    "model_backend": "gemini",
    "model": None,
    "max_iterations": 50,
    "request_timeout_seconds": 60,
    "screen_width": 1920,
    "screen_height": 1080,
    "screenshot_format": "png",
    "emergency_stop_hotkey": "<cmd>+<shift>+<esc>",
    "personalization": False,
}

API_KEY_ENV_VARS = {
    "gemini": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


class ConfigError(Exception):
    """Raised for configuration that prevents the daemon from starting."""


def _load_settings(settings_path: str = DEFAULT_SETTINGS_PATH) -> dict:
    settings = dict(DEFAULT_SETTINGS)
    try:
        with open(settings_path, "r", encoding="utf-8") as handle:
            stored = json.load(handle)
    except FileNotFoundError:
        return settings
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid settings file {settings_path}: {e}") from e
    if not isinstance(stored, dict):
        raise ConfigError(f"Invalid settings file {settings_path}: expected a JSON object")
    settings.update(stored)
    return settings


# ================================================================================================
# API KEYS
# ================================================================================================

def get_api_key(backend: str) -> str:
    """Return the API key for a model backend from the environment.

    Raises:
        ConfigError: If the variable is missing or empty
    """
    env_var = API_KEY_ENV_VARS.get(backend)
    if env_var is None:
        raise ConfigError(f"Unknown model backend: {backend!r}")
    api_key = (os.getenv(env_var) or "").strip()
    if not api_key:
        raise ConfigError(f"{env_var} environment variable must be set")
    return api_key


# ================================================================================================
# IPC SOCKET
# ================================================================================================

def get_socket_path(settings_path: str = DEFAULT_SETTINGS_PATH) -> str:
    settings = _load_settings(settings_path)
    return os.getenv("SUPERCTRL_SOCKET") or settings["socket_path"]


# ================================================================================================
# MODEL CONFIG
# ================================================================================================

def get_model_config(settings_path: str = DEFAULT_SETTINGS_PATH) -> Tuple[str, Optional[str]]:
    """Get the model configuration: (backend, model name or None for the backend default)"""
    settings = _load_settings(settings_path)
    backend = str(settings.get("model_backend") or "gemini").strip().lower()
    if backend == "claude":
        backend = "anthropic"
    if backend not in API_KEY_ENV_VARS:
        raise ConfigError(f"Unknown model backend: {backend!r}")
    return backend, settings.get("model") or None


def get_max_iterations(settings_path: str = DEFAULT_SETTINGS_PATH) -> int:
    settings = _load_settings(settings_path)
    return max(1, int(settings["max_iterations"]))


def get_request_timeout(settings_path: str = DEFAULT_SETTINGS_PATH) -> float:
    settings = _load_settings(settings_path)
    return float(settings["request_timeout_seconds"])


# ================================================================================================
# SCREEN SIZE
# ================================================================================================

def set_screen_size(screen_width: int, screen_height: int, settings_path: str = DEFAULT_SETTINGS_PATH) -> None:
    try:
        with open(settings_path, "r", encoding="utf-8") as handle:
            settings = json.load(handle)
    except FileNotFoundError:
        settings = {}

    settings["screen_width"] = screen_width
    settings["screen_height"] = screen_height

    with open(settings_path, "w", encoding="utf-8") as handle:
        json.dump(settings, handle, indent=4)


def get_screen_size(settings_path: str = DEFAULT_SETTINGS_PATH) -> tuple[int, int]:
    settings = _load_settings(settings_path)
    return (int(settings["screen_width"]), int(settings["screen_height"]))


def get_screenshot_format(settings_path: str = DEFAULT_SETTINGS_PATH) -> str:
    settings = _load_settings(settings_path)
    return str(settings["screenshot_format"]).lower()


# ================================================================================================
# HOTKEY
# ================================================================================================

def get_emergency_stop_hotkey(settings_path: str = DEFAULT_SETTINGS_PATH) -> str:
    """Hotkey in pynput GlobalHotKeys syntax."""
    settings = _load_settings(settings_path)
    return settings["emergency_stop_hotkey"]


# ================================================================================================
# PERSONALIZATION CONFIG
# ================================================================================================

def get_personalization_config(settings_path: str = DEFAULT_SETTINGS_PATH) -> Tuple[Union[str, bool]]:
    """Return tuple with personalization string or False if not set"""
    settings = _load_settings(settings_path)
    return (settings.get("personalization", False),)
