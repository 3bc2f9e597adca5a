"""
Gemini backend using the google-genai SDK.

The model calls the flat `computer_use` function, so its arguments are already
in canonical form. Model turns are replayed from the raw candidate content to
keep thought signatures intact.
"""
import base64
import uuid

from google import genai
from google.genai import errors, types

from models.backends import (
    AssistantTurn,
    ModelBackend,
    ModelReply,
    ModelTransportError,
    ToolCall,
    ToolResultTurn,
    UserTurn,
    group_turns,
)
from models.function_calls import COMPUTER_USE_TOOL_NAME, COMPUTER_USE_TOOLS, TOOL_CONFIG

RETRYABLE_STATUS_CODES = {408, 429}

# Prefix for ids assigned locally when the API omits them; never sent back.
LOCAL_CALL_ID_PREFIX = "local-"


def _is_retryable(error: errors.APIError) -> bool:
    code = getattr(error, "code", None) or 0
    return code in RETRYABLE_STATUS_CODES or code >= 500


class GeminiBackend(ModelBackend):
    """Gemini generate_content with function calling."""

    name = "gemini"
    tool_name = COMPUTER_USE_TOOL_NAME

    def __init__(self, api_key: str, model_name: str, timeout_seconds: float = 60.0, client=None):
        super().__init__(model_name, timeout_seconds)
        self.client = client or genai.Client(api_key=api_key)

    def _config(self, system_prompt: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=0.2,
            max_output_tokens=3000,
            tools=COMPUTER_USE_TOOLS,
            tool_config=TOOL_CONFIG,
        )

    # ================================================================================
    # REQUEST RENDERING
    # ================================================================================

    def _image_part(self, image: str, media_type: str) -> types.Part:
        return types.Part.from_bytes(data=base64.b64decode(image), mime_type=media_type)

    def _user_content(self, turn: UserTurn) -> types.Content:
        return types.Content(
            role="user",
            parts=[types.Part.from_text(text=turn.text), self._image_part(turn.image, turn.media_type)],
        )

    def _model_content(self, turn: AssistantTurn) -> types.Content:
        if isinstance(turn.raw, types.Content):
            return turn.raw
        parts = []
        if turn.text:
            parts.append(types.Part.from_text(text=turn.text))
        for call in turn.tool_calls:
            parts.append(types.Part(function_call=types.FunctionCall(
                id=None if call.id.startswith(LOCAL_CALL_ID_PREFIX) else call.id,
                name=call.name,
                args=call.raw_arguments or call.arguments,
            )))
        return types.Content(role="model", parts=parts)

    def _tool_results_content(self, results: list) -> types.Content:
        parts = []
        for result in results:
            response = {"output": "Action executed"} if result.success else {"error": result.error or "Action failed"}
            parts.append(types.Part(function_response=types.FunctionResponse(
                id=None if result.call_id.startswith(LOCAL_CALL_ID_PREFIX) else result.call_id,
                name=result.name,
                response=response,
            )))
        # Screenshots follow the function responses in the same user turn.
        for result in results:
            if result.image:
                parts.append(self._image_part(result.image, result.media_type))
        return types.Content(role="user", parts=parts)

    def build_contents(self, transcript: list) -> list:
        contents = []
        for item in group_turns(transcript):
            if isinstance(item, list):
                contents.append(self._tool_results_content(item))
            elif isinstance(item, UserTurn):
                contents.append(self._user_content(item))
            elif isinstance(item, AssistantTurn):
                contents.append(self._model_content(item))
        return contents

    # ================================================================================
    # REPLY PARSING
    # ================================================================================

    def parse_response(self, response) -> ModelReply:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            raise ModelTransportError("Gemini returned no candidates")
        content = candidates[0].content
        if content is None:
            finish_reason = getattr(candidates[0], "finish_reason", None)
            raise ModelTransportError(f"Gemini returned an empty candidate (finish reason: {finish_reason})")

        texts = []
        tool_calls = []
        for part in content.parts or []:
            if part.text and not getattr(part, "thought", False):
                texts.append(part.text)
            if part.function_call:
                call = part.function_call
                args = dict(call.args or {})
                tool_calls.append(ToolCall(
                    id=call.id or f"{LOCAL_CALL_ID_PREFIX}{uuid.uuid4().hex[:12]}",
                    name=call.name or "",
                    arguments=args,
                    raw_arguments=args,
                ))

        text = "\n".join(texts).strip() or None
        return ModelReply(text=text, tool_calls=tool_calls, raw=content)

    async def _generate(self, system_prompt: str, transcript: list, logical_size: tuple) -> ModelReply:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=self.build_contents(transcript),
                config=self._config(system_prompt),
            )
        except errors.APIError as e:
            raise ModelTransportError(f"Gemini API error: {e}", retryable=_is_retryable(e)) from e
        return self.parse_response(response)
