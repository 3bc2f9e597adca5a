"""
Computer Use Tools - Tool definitions exposed to the model backends.

The Gemini backend declares one flat `computer_use` function whose arguments
are already canonical. The Anthropic backend uses the vendor's built-in
computer tool and translates its actions in `models/claude.py`.
"""
from google.genai import types


# ================================================================================
# GEMINI TOOL DECLARATION
# ================================================================================

COMPUTER_USE_TOOL_NAME = "computer_use"

computer_use_declaration = {
    "name": COMPUTER_USE_TOOL_NAME,
    "description": (
        "Perform one action on the user's screen. Coordinates are pixels in the "
        "most recent screenshot. A new screenshot is returned after every action."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "action": {
                "type": "string",
                "enum": ["click", "type", "keypress", "scroll", "wait"],
                "description": "The action to perform.",
            },
            "x": {"type": "integer", "description": "X coordinate for click and scroll."},
            "y": {"type": "integer", "description": "Y coordinate for click and scroll."},
            "button": {
                "type": "string",
                "enum": ["left", "right", "middle"],
                "description": "Mouse button for click.",
                "default": "left",
            },
            "clicks": {"type": "integer", "description": "Number of clicks (2 for a double click).", "default": 1},
            "text": {"type": "string", "description": "Text to type."},
            "keys": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Keys to press together, e.g. [\"ctrl\", \"c\"] or [\"enter\"].",
            },
            "scroll_x": {"type": "integer", "description": "Horizontal scroll amount; positive scrolls right."},
            "scroll_y": {"type": "integer", "description": "Vertical scroll amount; positive scrolls down."},
            "duration_ms": {"type": "integer", "description": "Wait duration in milliseconds.", "default": 1000},
        },
        "required": ["action"],
    },
}

COMPUTER_USE_TOOLS = [types.Tool(function_declarations=[computer_use_declaration])]

TOOL_CONFIG = types.ToolConfig(
    function_calling_config=types.FunctionCallingConfig(
        mode="AUTO",
    )
)


# ================================================================================
# ANTHROPIC COMPUTER TOOL
# ================================================================================

ANTHROPIC_TOOL_NAME = "computer"
ANTHROPIC_TOOL_TYPE = "computer_20250124"
ANTHROPIC_BETA_FLAG = "computer-use-2025-01-24"


def anthropic_computer_tool(display_width: int, display_height: int) -> dict:
    """Return the built-in computer tool definition for the given logical size."""
    return {
        "type": ANTHROPIC_TOOL_TYPE,
        "name": ANTHROPIC_TOOL_NAME,
        "display_width_px": int(display_width),
        "display_height_px": int(display_height),
        "display_number": 1,
    }
