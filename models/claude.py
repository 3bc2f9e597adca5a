"""
Anthropic backend using the built-in computer tool.

The vendor tool reports actions such as `left_click` with a `coordinate`
array; they are translated into canonical tool arguments here so the agent
loop never sees vendor shapes.
"""
import anthropic

from models.backends import (
    AssistantTurn,
    ModelBackend,
    ModelReply,
    ModelTransportError,
    ToolCall,
    UserTurn,
    group_turns,
)
from models.function_calls import ANTHROPIC_BETA_FLAG, ANTHROPIC_TOOL_NAME, anthropic_computer_tool

CLICK_ACTIONS = {
    "left_click": ("left", 1),
    "right_click": ("right", 1),
    "middle_click": ("middle", 1),
    "double_click": ("left", 2),
    "triple_click": ("left", 3),
}

SCROLL_DIRECTIONS = {
    "up": (0, -1),
    "down": (0, 1),
    "left": (-1, 0),
    "right": (1, 0),
}


def translate_action(raw: dict) -> dict:
    """Translate a computer tool input into canonical tool arguments.

    Unsupported vendor actions pass through by name and are rejected by the
    action parser, which reports them back to the model.
    """
    action = raw.get("action")
    coordinate = raw.get("coordinate")

    if action in CLICK_ACTIONS:
        button, clicks = CLICK_ACTIONS[action]
        return {"action": "click", "coordinate": coordinate, "button": button, "clicks": clicks}
    if action == "type":
        return {"action": "type", "text": raw.get("text")}
    if action == "key":
        return {"action": "keypress", "keys": raw.get("text")}
    if action == "scroll":
        direction = str(raw.get("scroll_direction") or "down").lower()
        step_x, step_y = SCROLL_DIRECTIONS.get(direction, (0, 0))
        amount = raw.get("scroll_amount")
        amount = 3 if amount is None else amount
        if isinstance(amount, (int, float)) and not isinstance(amount, bool):
            amount = int(amount)
        else:
            amount = 0
        return {
            "action": "scroll",
            "coordinate": coordinate,
            "scroll_x": step_x * amount,
            "scroll_y": step_y * amount,
        }
    if action == "wait":
        return {"action": "wait", "duration_seconds": raw.get("duration", 1)}
    if action == "screenshot":
        # A fresh screenshot is returned after every action anyway.
        return {"action": "wait", "duration_ms": 0}
    return {"action": action}


def _image_block(image: str, media_type: str) -> dict:
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": image},
    }


class ClaudeBackend(ModelBackend):
    """Anthropic beta messages API with the computer tool."""

    name = "anthropic"
    tool_name = ANTHROPIC_TOOL_NAME

    def __init__(self, api_key: str, model_name: str, timeout_seconds: float = 60.0, client=None, max_tokens: int = 4096):
        super().__init__(model_name, timeout_seconds)
        # Retries are handled by the agent loop.
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout_seconds, max_retries=0)
        self.max_tokens = max_tokens

    # ================================================================================
    # REQUEST RENDERING
    # ================================================================================

    def _assistant_message(self, turn: AssistantTurn) -> dict:
        content = []
        if turn.text:
            content.append({"type": "text", "text": turn.text})
        for call in turn.tool_calls:
            content.append({
                "type": "tool_use",
                "id": call.id,
                "name": call.name,
                "input": call.raw_arguments,
            })
        return {"role": "assistant", "content": content}

    def _tool_results_message(self, results: list) -> dict:
        content = []
        for result in results:
            blocks = []
            if result.error:
                blocks.append({"type": "text", "text": result.error})
            if result.image:
                blocks.append(_image_block(result.image, result.media_type))
            block = {"type": "tool_result", "tool_use_id": result.call_id, "content": blocks}
            if not result.success:
                block["is_error"] = True
            content.append(block)
        return {"role": "user", "content": content}

    def build_messages(self, transcript: list) -> list:
        messages = []
        for item in group_turns(transcript):
            if isinstance(item, list):
                messages.append(self._tool_results_message(item))
            elif isinstance(item, UserTurn):
                messages.append({
                    "role": "user",
                    "content": [
                        {"type": "text", "text": item.text},
                        _image_block(item.image, item.media_type),
                    ],
                })
            elif isinstance(item, AssistantTurn):
                messages.append(self._assistant_message(item))
        return messages

    # ================================================================================
    # REPLY PARSING
    # ================================================================================

    def parse_response(self, response) -> ModelReply:
        content = getattr(response, "content", None)
        if content is None:
            raise ModelTransportError("Anthropic returned no content")

        texts = []
        tool_calls = []
        for block in content:
            block_type = getattr(block, "type", None)
            if block_type == "text" and block.text:
                texts.append(block.text)
            elif block_type == "tool_use":
                raw_input = dict(block.input or {})
                arguments = translate_action(raw_input) if block.name == ANTHROPIC_TOOL_NAME else raw_input
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=arguments,
                    raw_arguments=raw_input,
                ))

        text = "\n".join(texts).strip() or None
        return ModelReply(text=text, tool_calls=tool_calls, raw=content)

    async def _generate(self, system_prompt: str, transcript: list, logical_size: tuple) -> ModelReply:
        width, height = logical_size
        try:
            response = await self.client.beta.messages.create(
                model=self.model_name,
                max_tokens=self.max_tokens,
                system=system_prompt,
                messages=self.build_messages(transcript),
                tools=[anthropic_computer_tool(width, height)],
                betas=[ANTHROPIC_BETA_FLAG],
            )
        except (anthropic.APITimeoutError, anthropic.APIConnectionError) as e:
            raise ModelTransportError(f"Anthropic connection failed: {e}", retryable=True) from e
        except anthropic.APIStatusError as e:
            retryable = e.status_code in (408, 429) or e.status_code >= 500
            raise ModelTransportError(f"Anthropic API error: {e}", retryable=retryable) from e
        return self.parse_response(response)
