"""
Computer Use Agent - Action Model

Defines the discrete UI actions the model can request, the key-name table they
are validated against, and the conversion between tool-call arguments and
actions.
"""
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Mapping, Union

from agents.computer_use.scaling import DisplayGeometry


class ActionError(Exception):
    """Raised when an action cannot be parsed or executed."""


class InvalidActionError(ActionError):
    """Raised for malformed tool-call arguments."""


class UnknownKeyError(ActionError):
    """Raised for key names missing from the key table."""


# ================================================================================
# KEY TABLE
# ================================================================================

MOUSE_BUTTONS = ("left", "right", "middle")

# Accepted spellings (lowercased) -> canonical key name.
KEY_ALIASES = {
    "return": "enter",
    "enter": "enter",
    "kp_enter": "enter",
    "tab": "tab",
    "space": "space",
    "backspace": "backspace",
    "delete": "delete",
    "del": "delete",
    "insert": "insert",
    "escape": "esc",
    "esc": "esc",
    "up": "up",
    "uparrow": "up",
    "arrowup": "up",
    "down": "down",
    "downarrow": "down",
    "arrowdown": "down",
    "left": "left",
    "leftarrow": "left",
    "arrowleft": "left",
    "right": "right",
    "rightarrow": "right",
    "arrowright": "right",
    "home": "home",
    "end": "end",
    "pageup": "pageup",
    "page_up": "pageup",
    "prior": "pageup",
    "pagedown": "pagedown",
    "page_down": "pagedown",
    "next": "pagedown",
    "capslock": "capslock",
    "caps_lock": "capslock",
    "shift": "shift",
    "control": "ctrl",
    "ctrl": "ctrl",
    "alt": "alt",
    "option": "alt",
    "meta": "command",
    "command": "command",
    "cmd": "command",
    "super": "command",
    "win": "command",
}
KEY_ALIASES.update({f"f{index}": f"f{index}" for index in range(1, 13)})

MODIFIER_KEYS = frozenset({"shift", "ctrl", "alt", "command"})
CANONICAL_KEYS = frozenset(KEY_ALIASES.values())


def normalize_key(name: str) -> str:
    """Resolve a key name to its canonical form.

    Args:
        name: Key name as written by the model, e.g. "Control" or "a"

    Returns:
        The canonical key name

    Raises:
        UnknownKeyError: If the name is not in the key table
    """
    if not isinstance(name, str) or not name:
        raise UnknownKeyError(f"Unknown key: {name!r}")
    if len(name) == 1:
        return name.lower() if name.isalpha() else name
    canonical = KEY_ALIASES.get(name.strip().lower())
    if canonical is None:
        raise UnknownKeyError(f"Unknown key: {name}")
    return canonical


def parse_keys(value: Any) -> tuple[str, ...]:
    """Parse a key list, or a "ctrl+shift+a" chord string, into canonical names."""
    if value is None:
        raise InvalidActionError("Missing keys")
    if isinstance(value, str):
        if len(value) > 1 and "+" in value:
            # "ctrl++" is ctrl plus the "+" key.
            plus_key = value.endswith("++")
            chord = value[:-2] if plus_key else value
            parts = [part.strip() for part in chord.split("+")]
            if plus_key:
                parts.append("+")
            if not all(parts):
                raise InvalidActionError(f"Invalid key chord: {value!r}")
        else:
            parts = [value]
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        raise InvalidActionError(f"Invalid keys format: {value!r}")
    return tuple(normalize_key(part) for part in parts)


# ================================================================================
# ACTIONS
# ================================================================================

@dataclass(frozen=True)
class Click:
    x: int
    y: int
    button: str = "left"
    clicks: int = 1

    kind: ClassVar[str] = "click"

    def describe(self) -> str:
        prefix = {1: "", 2: "double ", 3: "triple "}.get(self.clicks, f"{self.clicks}x ")
        return f"{prefix}{self.button} click at ({self.x}, {self.y})"


@dataclass(frozen=True)
class TypeText:
    text: str

    kind: ClassVar[str] = "type"

    def describe(self) -> str:
        preview = self.text if len(self.text) <= 40 else f"{self.text[:37]}..."
        return f"type {preview!r}"


@dataclass(frozen=True)
class Keypress:
    keys: tuple[str, ...]

    kind: ClassVar[str] = "keypress"

    def describe(self) -> str:
        return f"keypress {'+'.join(self.keys) or '(none)'}"


@dataclass(frozen=True)
class Scroll:
    x: int
    y: int
    scroll_x: int = 0
    scroll_y: int = 0

    kind: ClassVar[str] = "scroll"

    def describe(self) -> str:
        return f"scroll ({self.scroll_x}, {self.scroll_y}) at ({self.x}, {self.y})"


@dataclass(frozen=True)
class Wait:
    duration_ms: int = 1000

    kind: ClassVar[str] = "wait"

    def describe(self) -> str:
        return f"wait {self.duration_ms} ms"


Action = Union[Click, TypeText, Keypress, Scroll, Wait]


# ================================================================================
# TOOL ARGUMENT CONVERSION
# ================================================================================

def _to_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidActionError(f"Invalid {field} value: {value!r}")
    if isinstance(value, (int, float)):
        return int(round(value))
    if isinstance(value, str):
        try:
            return int(round(float(value.strip())))
        except ValueError:
            pass
    raise InvalidActionError(f"Invalid {field} value: {value!r}")


def _coordinates(args: Mapping[str, Any]) -> tuple[int, int]:
    if args.get("x") is None and args.get("y") is None and args.get("coordinate") is not None:
        coordinate = args["coordinate"]
        if not isinstance(coordinate, (list, tuple)) or len(coordinate) != 2:
            raise InvalidActionError(f"Invalid coordinate: {coordinate!r}")
        return _to_int(coordinate[0], "x"), _to_int(coordinate[1], "y")

    if args.get("x") is None:
        raise InvalidActionError("Missing x coordinate")
    if args.get("y") is None:
        raise InvalidActionError("Missing y coordinate")
    return _to_int(args["x"], "x"), _to_int(args["y"], "y")


def _duration_ms(args: Mapping[str, Any]) -> int:
    if args.get("duration_ms") is not None:
        duration = _to_int(args["duration_ms"], "duration_ms")
    elif args.get("duration_seconds") is not None:
        seconds = args["duration_seconds"]
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float, str)):
            raise InvalidActionError(f"Invalid duration_seconds value: {seconds!r}")
        try:
            duration = int(round(float(seconds) * 1000))
        except ValueError:
            raise InvalidActionError(f"Invalid duration_seconds value: {seconds!r}") from None
    else:
        duration = 1000
    if duration < 0:
        raise InvalidActionError(f"Wait duration must not be negative: {duration}")
    return duration


def parse_tool_args(args: Mapping[str, Any]) -> Action:
    """Build an action from canonical tool-call arguments.

    Coordinates stay in model space; see `to_physical_action`.
    """
    if not isinstance(args, Mapping):
        raise InvalidActionError(f"Tool arguments must be an object, got {type(args).__name__}")

    action = args.get("action")
    if not isinstance(action, str) or not action.strip():
        raise InvalidActionError("Missing action")
    name = action.strip().lower()

    if name == "click":
        x, y = _coordinates(args)
        button = args.get("button") or "left"
        if not isinstance(button, str) or button.lower() not in MOUSE_BUTTONS:
            raise InvalidActionError(f"Unknown mouse button: {button!r}")
        clicks = args.get("clicks")
        clicks = 1 if clicks is None else _to_int(clicks, "clicks")
        if clicks not in (1, 2, 3):
            raise InvalidActionError(f"Invalid click count: {clicks}")
        return Click(x=x, y=y, button=button.lower(), clicks=clicks)

    if name == "type":
        text = args.get("text")
        if not isinstance(text, str):
            raise InvalidActionError("Missing text")
        return TypeText(text=text)

    if name == "keypress":
        return Keypress(keys=parse_keys(args.get("keys")))

    if name == "scroll":
        x, y = _coordinates(args)
        scroll_x = args.get("scroll_x")
        scroll_y = args.get("scroll_y")
        return Scroll(
            x=x,
            y=y,
            scroll_x=0 if scroll_x is None else _to_int(scroll_x, "scroll_x"),
            scroll_y=0 if scroll_y is None else _to_int(scroll_y, "scroll_y"),
        )

    if name == "wait":
        return Wait(duration_ms=_duration_ms(args))

    raise InvalidActionError(f"Unknown action: {action}")


def action_to_tool_args(action: Action) -> dict[str, Any]:
    """Serialize an action into canonical tool-call arguments."""
    if isinstance(action, Click):
        return {
            "action": "click",
            "x": action.x,
            "y": action.y,
            "button": action.button,
            "clicks": action.clicks,
        }
    if isinstance(action, TypeText):
        return {"action": "type", "text": action.text}
    if isinstance(action, Keypress):
        return {"action": "keypress", "keys": list(action.keys)}
    if isinstance(action, Scroll):
        return {
            "action": "scroll",
            "x": action.x,
            "y": action.y,
            "scroll_x": action.scroll_x,
            "scroll_y": action.scroll_y,
        }
    if isinstance(action, Wait):
        return {"action": "wait", "duration_ms": action.duration_ms}
    raise InvalidActionError(f"Unsupported action type: {type(action).__name__}")


def to_physical_action(action: Action, geometry: DisplayGeometry) -> Action:
    """Scale the coordinates of a model-space action to physical pixels."""
    if isinstance(action, (Click, Scroll)):
        x, y = geometry.to_physical(action.x, action.y)
        return replace(action, x=x, y=y)
    return action
