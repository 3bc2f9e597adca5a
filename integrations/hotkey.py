"""
Emergency Stop Hotkey - pynput global hotkey listener.

Runs on pynput's own listener thread and only touches the thread-safe
StopSignal. The session controller records the cancellation once the running
session observes it.
"""
from core.settings import get_emergency_stop_hotkey


class EmergencyStop:
    """Triggers the stop signal when the global hotkey (default Cmd+Shift+Esc) is pressed."""

    def __init__(self, stop_signal, hotkey: str = None, listener_factory=None):
        self.stop_signal = stop_signal
        self.hotkey = hotkey or get_emergency_stop_hotkey()
        self._listener_factory = listener_factory
        self._listener = None

    def trigger(self):
        print("[EmergencyStop] Hotkey pressed, stopping current command.")
        self.stop_signal.trigger()

    def start(self) -> bool:
        """Start listening. Returns False when no global hotkey can be registered."""
        try:
            factory = self._listener_factory
            if factory is None:
                # Needs a display (or accessibility permission on macOS) at import time.
                from pynput.keyboard import GlobalHotKeys

                factory = GlobalHotKeys
            self._listener = factory({self.hotkey: self.trigger})
            self._listener.start()
        except Exception as e:
            print(f"[EmergencyStop] Warning: could not register {self.hotkey}: {e}")
            self._listener = None
            return False
        print(f"[EmergencyStop] Listening for {self.hotkey}")
        return True

    def stop(self):
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
