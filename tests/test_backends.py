"""
Checks for the Gemini and Anthropic backends' transcript rendering, reply
parsing and error mapping, using fake SDK clients.

Usage:
    python tests/test_backends.py
"""

import asyncio
import base64
import os
import sys
from types import SimpleNamespace

import anthropic
import httpx
from google.genai import errors, types

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT_DIR)

from agents.computer_use.actions import Click, Keypress, Scroll, TypeText, Wait, parse_tool_args
from models.backends import (
    AssistantTurn,
    ModelBackend,
    ModelReply,
    ModelTransportError,
    ToolCall,
    ToolResultTurn,
    UserTurn,
    create_backend,
)
from models.claude import ClaudeBackend, translate_action
from models.function_calls import ANTHROPIC_BETA_FLAG, ANTHROPIC_TOOL_TYPE, COMPUTER_USE_TOOL_NAME
from models.gemini import GeminiBackend

IMAGE = base64.b64encode(b"\x89PNG fake").decode("ascii")


class _FakeGeminiModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


class _FakeAnthropicMessages:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _gemini(models):
    return GeminiBackend("key", "gemini-test", client=SimpleNamespace(aio=SimpleNamespace(models=models)))


def _claude(messages):
    return ClaudeBackend("key", "claude-test", client=SimpleNamespace(beta=SimpleNamespace(messages=messages)))


def _gemini_response(*parts):
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


# ================================================================================
# GEMINI
# ================================================================================

def test_gemini_parses_function_calls() -> None:
    response = _gemini_response(
        types.Part(text="Clicking the button"),
        types.Part(function_call=types.FunctionCall(id="fc1", name=COMPUTER_USE_TOOL_NAME, args={"action": "click", "x": 5, "y": 6})),
    )
    reply = _gemini(_FakeGeminiModels()).parse_response(response)
    assert reply.text == "Clicking the button"
    assert len(reply.tool_calls) == 1
    call = reply.tool_calls[0]
    assert call.id == "fc1" and call.name == COMPUTER_USE_TOOL_NAME
    assert parse_tool_args(call.arguments) == Click(5, 6)


def test_gemini_groups_tool_results_and_replays_model_content() -> None:
    backend = _gemini(_FakeGeminiModels())
    raw_content = types.Content(role="model", parts=[
        types.Part(function_call=types.FunctionCall(id="a", name=COMPUTER_USE_TOOL_NAME, args={"action": "wait"})),
        types.Part(function_call=types.FunctionCall(id="b", name=COMPUTER_USE_TOOL_NAME, args={"action": "wait"})),
    ])
    transcript = [
        UserTurn(text="do it", image=IMAGE),
        AssistantTurn(text=None, tool_calls=[
            ToolCall("a", COMPUTER_USE_TOOL_NAME, {"action": "wait"}),
            ToolCall("b", COMPUTER_USE_TOOL_NAME, {"action": "wait"}),
        ], raw=raw_content),
        ToolResultTurn(call_id="a", name=COMPUTER_USE_TOOL_NAME, success=True, image=IMAGE),
        ToolResultTurn(call_id="b", name=COMPUTER_USE_TOOL_NAME, success=False, error="boom", image=IMAGE),
    ]
    contents = backend.build_contents(transcript)
    assert [content.role for content in contents] == ["user", "model", "user"]
    assert contents[1] is raw_content

    results = contents[2].parts
    responses = [part.function_response for part in results if part.function_response]
    assert [response.id for response in responses] == ["a", "b"]
    assert responses[1].response == {"error": "boom"}
    images = [part.inline_data for part in results if part.inline_data]
    assert len(images) == 2 and images[0].mime_type == "image/png"


def test_gemini_request_uses_tool_and_system_prompt() -> None:
    models = _FakeGeminiModels(response=_gemini_response(types.Part(text="all done")))
    reply = asyncio.run(_gemini(models).generate("SYSTEM", [UserTurn(text="hi", image=IMAGE)], (1429, 804)))
    assert reply.text == "all done" and reply.tool_calls == []
    config = models.calls[0]["config"]
    assert config.system_instruction == "SYSTEM"
    declarations = config.tools[0].function_declarations
    assert declarations[0].name == COMPUTER_USE_TOOL_NAME
    assert models.calls[0]["model"] == "gemini-test"


def test_gemini_server_errors_are_retryable() -> None:
    server_error = errors.ServerError(503, {"error": {"code": 503, "message": "overloaded", "status": "UNAVAILABLE"}})
    try:
        asyncio.run(_gemini(_FakeGeminiModels(error=server_error)).generate("s", [], (10, 10)))
    except ModelTransportError as e:
        assert e.retryable
    else:
        raise AssertionError("expected ModelTransportError")

    client_error = errors.ClientError(400, {"error": {"code": 400, "message": "bad request", "status": "INVALID_ARGUMENT"}})
    try:
        asyncio.run(_gemini(_FakeGeminiModels(error=client_error)).generate("s", [], (10, 10)))
    except ModelTransportError as e:
        assert not e.retryable
    else:
        raise AssertionError("expected ModelTransportError")


def test_gemini_empty_response_is_a_transport_error() -> None:
    try:
        _gemini(_FakeGeminiModels()).parse_response(types.GenerateContentResponse(candidates=[]))
    except ModelTransportError as e:
        assert not e.retryable
    else:
        raise AssertionError("expected ModelTransportError")


# ================================================================================
# ANTHROPIC
# ================================================================================

def test_translates_vendor_actions_to_canonical_arguments() -> None:
    assert parse_tool_args(translate_action({"action": "left_click", "coordinate": [10, 20]})) == Click(10, 20, "left")
    assert parse_tool_args(translate_action({"action": "right_click", "coordinate": [1, 2]})) == Click(1, 2, "right")
    assert parse_tool_args(translate_action({"action": "double_click", "coordinate": [3, 4]})) == Click(3, 4, "left", 2)
    assert parse_tool_args(translate_action({"action": "type", "text": "hi"})) == TypeText("hi")
    assert parse_tool_args(translate_action({"action": "key", "text": "ctrl+s"})) == Keypress(("ctrl", "s"))
    assert parse_tool_args(translate_action({
        "action": "scroll", "coordinate": [5, 5], "scroll_direction": "up", "scroll_amount": 4,
    })) == Scroll(5, 5, 0, -4)
    assert parse_tool_args(translate_action({
        "action": "scroll", "coordinate": [5, 5], "scroll_direction": "right", "scroll_amount": 2,
    })) == Scroll(5, 5, 2, 0)
    assert parse_tool_args(translate_action({"action": "wait", "duration": 2})) == Wait(2000)
    assert parse_tool_args(translate_action({"action": "screenshot"})) == Wait(0)
    assert translate_action({"action": "mouse_move", "coordinate": [1, 1]}) == {"action": "mouse_move"}


def test_claude_request_shape() -> None:
    response = SimpleNamespace(content=[
        SimpleNamespace(type="text", text="Clicking"),
        SimpleNamespace(type="tool_use", id="toolu_1", name="computer", input={"action": "left_click", "coordinate": [7, 8]}),
    ])
    messages = _FakeAnthropicMessages(response=response)
    transcript = [UserTurn(text="click", image=IMAGE)]
    reply = asyncio.run(_claude(messages).generate("SYSTEM", transcript, (1429, 804)))

    kwargs = messages.calls[0]
    assert kwargs["system"] == "SYSTEM"
    assert kwargs["betas"] == [ANTHROPIC_BETA_FLAG]
    tool = kwargs["tools"][0]
    assert tool["type"] == ANTHROPIC_TOOL_TYPE and tool["name"] == "computer"
    assert (tool["display_width_px"], tool["display_height_px"]) == (1429, 804)
    image_block = kwargs["messages"][0]["content"][1]
    assert image_block == {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": IMAGE}}

    assert reply.text == "Clicking"
    call = reply.tool_calls[0]
    assert call.id == "toolu_1"
    assert call.raw_arguments == {"action": "left_click", "coordinate": [7, 8]}
    assert parse_tool_args(call.arguments) == Click(7, 8)


def test_claude_tool_results_carry_screenshots() -> None:
    call = ToolCall("toolu_1", "computer", {"action": "wait"}, {"action": "screenshot"})
    transcript = [
        UserTurn(text="look", image=IMAGE),
        AssistantTurn(text="Looking", tool_calls=[call]),
        ToolResultTurn(call_id="toolu_1", name="computer", success=True, image=IMAGE),
    ]
    messages = _claude(_FakeAnthropicMessages()).build_messages(transcript)
    assert [message["role"] for message in messages] == ["user", "assistant", "user"]
    assert messages[1]["content"][1] == {"type": "tool_use", "id": "toolu_1", "name": "computer", "input": {"action": "screenshot"}}
    result = messages[2]["content"][0]
    assert result["type"] == "tool_result" and result["tool_use_id"] == "toolu_1"
    assert "is_error" not in result
    assert result["content"][0]["type"] == "image"


def test_claude_error_mapping() -> None:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    rate_limited = anthropic.RateLimitError("slow down", response=httpx.Response(429, request=request), body=None)
    unauthorized = anthropic.AuthenticationError("bad key", response=httpx.Response(401, request=request), body=None)
    connection = anthropic.APIConnectionError(request=request)

    for error, retryable in [(rate_limited, True), (unauthorized, False), (connection, True)]:
        try:
            asyncio.run(_claude(_FakeAnthropicMessages(error=error)).generate("s", [], (10, 10)))
        except ModelTransportError as e:
            assert e.retryable is retryable
        else:
            raise AssertionError("expected ModelTransportError")


# ================================================================================
# SHARED
# ================================================================================

def test_request_timeout_is_retryable() -> None:
    class _SlowBackend(ModelBackend):
        name = "slow"

        async def _generate(self, system_prompt, transcript, logical_size):
            await asyncio.sleep(5)
            return ModelReply()

    try:
        asyncio.run(_SlowBackend("m", timeout_seconds=0.05).generate("s", [], (1, 1)))
    except ModelTransportError as e:
        assert e.retryable and "timed out" in str(e)
    else:
        raise AssertionError("expected ModelTransportError")


def test_create_backend_rejects_unknown_names() -> None:
    try:
        create_backend("openai", "key")
    except ValueError:
        return
    raise AssertionError("expected ValueError")


if __name__ == "__main__":
    test_gemini_parses_function_calls()
    test_gemini_groups_tool_results_and_replays_model_content()
    test_gemini_request_uses_tool_and_system_prompt()
    test_gemini_server_errors_are_retryable()
    test_gemini_empty_response_is_a_transport_error()
    test_translates_vendor_actions_to_canonical_arguments()
    test_claude_request_shape()
    test_claude_tool_results_carry_screenshots()
    test_claude_error_mapping()
    test_request_timeout_is_retryable()
    test_create_backend_rejects_unknown_names()
    print("[test_backends] All checks passed.")
