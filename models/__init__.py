"""
superctrl Models - vision model backends for the computer use agent.
"""
from models.backends import (
    ModelBackend,
    ModelReply,
    ModelTransportError,
    ToolCall,
    UserTurn,
    AssistantTurn,
    ToolResultTurn,
    create_backend,
)
from models.function_calls import COMPUTER_USE_TOOL_NAME, ANTHROPIC_TOOL_NAME
