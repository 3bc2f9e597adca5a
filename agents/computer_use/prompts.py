"""
Computer Use Agent - System Prompts

System instruction for the desktop computer use agent.
"""
import platform

COMPUTER_USE_SYSTEM_PROMPT = """
You are a computer use agent running on {os_name}. The display resolution is {width}x{height}.
Execute the user's command by using the {tool_name} tool to perform actions.
Be precise with coordinates and actions.

You are given a screenshot of the whole display. Every action you request is executed
on the real screen, and a fresh screenshot is returned after each action.

IMPORTANT RULES:
- All coordinates are pixels in the screenshot you were given: x from 0 to {max_x}, y from 0 to {max_y}
- Only interact with elements you can currently see
- Prefer keyboard shortcuts when they are reliable
- Use `wait` when the screen is still loading or animating
- Before choosing an action, check if the user goal is already satisfied on screen
- When the task is complete, stop calling tools and reply with a short summary of what you did
"""

PERSONALIZATION_PROMPT = """
About the user:
{personalization}
"""


def _os_name() -> str:
    system = platform.system()
    return {"Darwin": "macOS"}.get(system, system or "an unknown operating system")


def build_system_prompt(logical_width: int, logical_height: int, tool_name: str, personalization=None) -> str:
    """Build the system instruction for one session.

    Args:
        logical_width: Width of the screenshots the model sees
        logical_height: Height of the screenshots the model sees
        tool_name: Name of the automation tool exposed to the model
        personalization: Optional free text about the user
    """
    prompt = COMPUTER_USE_SYSTEM_PROMPT.format(
        os_name=_os_name(),
        width=logical_width,
        height=logical_height,
        max_x=max(logical_width - 1, 0),
        max_y=max(logical_height - 1, 0),
        tool_name=tool_name,
    )
    if isinstance(personalization, str) and personalization.strip():
        prompt += PERSONALIZATION_PROMPT.format(personalization=personalization.strip())
    return prompt.strip()
