"""
Computer Use Agent - Keyboard and Mouse Control

Executes actions as primitive input events on the real display.
"""
import platform
import threading
import time

from agents.computer_use.actions import (
    Action,
    ActionError,
    Click,
    Keypress,
    MODIFIER_KEYS,
    Scroll,
    TypeText,
    Wait,
    normalize_key,
)

# Pause between a pointer move / modifier press and the next event.
SETTLE_DELAY_SECONDS = 0.05

# Only one executor may drive the physical pointer and keyboard at a time.
_INPUT_LOCK = threading.Lock()


# ================================================================================
# INPUT BACKEND
# ================================================================================

class PyAutoGuiBackend:
    """Input backend using pyautogui for pointer/keys and pynput for text."""

    def __init__(self):
        # Both libraries need a display at import time.
        import pyautogui
        from pynput.keyboard import Controller

        self._gui = pyautogui
        self._text = Controller()
        self._is_mac = platform.system() == "Darwin"

    def _platform_key(self, key: str) -> str:
        if key == "command" and not self._is_mac:
            return "winleft"
        return key

    def move_to(self, x: int, y: int):
        self._gui.moveTo(x=x, y=y)

    def click(self, button: str, clicks: int = 1):
        self._gui.click(button=button, clicks=clicks, interval=0.05)

    def key_down(self, key: str):
        self._gui.keyDown(self._platform_key(key))

    def key_up(self, key: str):
        self._gui.keyUp(self._platform_key(key))

    def press(self, key: str):
        self._gui.press(self._platform_key(key))

    def scroll(self, amount: int):
        # pyautogui scrolls up for positive amounts.
        self._gui.scroll(-amount)

    def hscroll(self, amount: int):
        self._gui.hscroll(amount)

    def type_text(self, text: str):
        # Character injection, so shifted and AltGr characters need no modifiers.
        self._text.type(text)


# ================================================================================
# EXECUTOR
# ================================================================================

class ActionExecutor:
    """Translates actions into synchronous input events."""

    def __init__(self, backend=None, sleep=time.sleep, settle_delay: float = SETTLE_DELAY_SECONDS, stop_signal=None):
        self.backend = backend if backend is not None else PyAutoGuiBackend()
        self._sleep = sleep
        self.settle_delay = settle_delay
        self.stop_signal = stop_signal

    def execute(self, action: Action) -> None:
        """Perform one action, blocking until its input events are sent.

        Raises:
            ActionError: If the action is unsupported or an input event fails
        """
        handlers = {
            Click: self._click,
            TypeText: self._type_text,
            Keypress: self._keypress,
            Scroll: self._scroll,
            Wait: self._wait,
        }
        handler = handlers.get(type(action))
        if handler is None:
            raise ActionError(f"Unsupported action: {action!r}")
        with _INPUT_LOCK:
            handler(action)

    def _settle(self):
        if self.settle_delay > 0:
            self._sleep(self.settle_delay)

    def _step(self, label: str, event, *args):
        try:
            event(*args)
        except ActionError:
            raise
        except Exception as exc:
            raise ActionError(f"Failed to {label}: {exc}") from exc

    def _click(self, action: Click):
        self._step("move mouse", self.backend.move_to, action.x, action.y)
        self._settle()
        self._step("click mouse", self.backend.click, action.button, action.clicks)

    def _type_text(self, action: TypeText):
        if action.text:
            self._step("type text", self.backend.type_text, action.text)

    def _keypress(self, action: Keypress):
        keys = [normalize_key(key) for key in action.keys]
        if not keys:
            return

        modifiers = [key for key in keys if key in MODIFIER_KEYS]
        regular_keys = [key for key in keys if key not in MODIFIER_KEYS]

        pressed = []
        error = None
        try:
            for modifier in modifiers:
                self._step("press modifier key", self.backend.key_down, modifier)
                pressed.append(modifier)

            if modifiers:
                self._settle()

            for key in regular_keys:
                self._step("press key", self.backend.press, key)
                self._settle()
        except ActionError as exc:
            error = exc

        # Every pressed modifier is released; the first failure is reported.
        for modifier in reversed(pressed):
            try:
                self._step("release modifier key", self.backend.key_up, modifier)
            except ActionError as exc:
                if error is None:
                    error = exc
        if error is not None:
            raise error

    def _scroll(self, action: Scroll):
        self._step("move mouse", self.backend.move_to, action.x, action.y)
        self._settle()
        if action.scroll_x:
            self._step("scroll horizontally", self.backend.hscroll, action.scroll_x)
        if action.scroll_y:
            self._step("scroll vertically", self.backend.scroll, action.scroll_y)

    def _wait(self, action: Wait):
        seconds = action.duration_ms / 1000.0
        if self.stop_signal is not None:
            # Returns early when a stop arrives mid-wait.
            self.stop_signal.wait(seconds)
        else:
            self._sleep(seconds)
