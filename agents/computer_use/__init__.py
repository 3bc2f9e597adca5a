"""
Computer Use Agent - Desktop control via screenshots + mouse/keyboard.

This agent sends screenshots of the whole display to a vision model and
executes the actions it requests:
- Clicks, typing, key combinations, scrolling and waits
- Coordinates mapped from the model's bounded resolution to physical pixels
- Cooperative cancellation through a shared stop signal
"""
from agents.computer_use.agent import (
    ComputerUseAgent,
    IterationLimitExceeded,
    Session,
    SessionState,
)
from agents.computer_use.actions import (
    ActionError,
    InvalidActionError,
    UnknownKeyError,
    Click,
    TypeText,
    Keypress,
    Scroll,
    Wait,
    parse_tool_args,
    action_to_tool_args,
    to_physical_action,
)
from agents.computer_use.keyboard import ActionExecutor, PyAutoGuiBackend
from agents.computer_use.scaling import DisplayGeometry, calculate_scale_factor
from agents.computer_use.screenshot import ScreenCapture, ScreenCaptureError
