"""Encode/decode tests for the three completion protocols."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

import gora.config as cfg
from gora.agents.roles import AgentRole
from gora.config import ModelConfig, Settings, resolve_role_models
from gora.errors import ConfigError, ProviderError
from gora.models.turns import TextPart, ToolCallPart, ToolResultPart, Turn
from gora.providers import create_adapter
from gora.providers.anthropic_adapter import AnthropicAdapter
from gora.providers.gemini_adapter import GeminiAdapter, to_gemini_schema
from gora.providers.openai_adapter import OpenAIAdapter
from gora.tools import ToolSchema

READ_FILE = ToolSchema(
    "read_file",
    "Read a file",
    {"type": "object", "properties": {"path": {"type": "string", "description": "Path"}}, "required": ["path"]},
)


def _conversation() -> list[Turn]:
    return [
        Turn.user("read both files"),
        Turn.assistant(
            TextPart(text="Reading."),
            ToolCallPart(id="t1", name="read_file", input={"path": "a.py"}),
            ToolCallPart(id="t2", name="read_file", input={"path": "b.py"}),
        ),
        Turn.tool_results(
            [
                ToolResultPart(call_id="t1", name="read_file", content="print('a')"),
                ToolResultPart(call_id="t2", name="read_file", content="Error reading file: nope", is_error=True),
            ]
        ),
    ]


# ---------------------------------------------------------------------------
# Block-structured (Anthropic)
# ---------------------------------------------------------------------------

@pytest.fixture
def anthropic_adapter() -> AnthropicAdapter:
    return AnthropicAdapter(ModelConfig(model="claude-test", temperature=0.2), client=MagicMock())


def test_anthropic_encodes_blocks(anthropic_adapter):
    request = anthropic_adapter.encode_outbound_turn(_conversation(), [READ_FILE], system="be brief")

    assert request["model"] == "claude-test"
    assert request["system"] == "be brief"
    assert request["temperature"] == 0.2
    assert request["tools"] == [
        {"name": "read_file", "description": "Read a file", "input_schema": READ_FILE.parameters}
    ]
    user, assistant, results = request["messages"]
    assert user == {"role": "user", "content": "read both files"}
    assert assistant["content"][0] == {"type": "text", "text": "Reading."}
    assert assistant["content"][1] == {"type": "tool_use", "id": "t1", "name": "read_file", "input": {"path": "a.py"}}
    assert results["role"] == "user"
    assert [b["tool_use_id"] for b in results["content"]] == ["t1", "t2"]
    assert "is_error" not in results["content"][0]
    assert results["content"][1]["is_error"] is True


def test_anthropic_decodes_text_and_tool_use(anthropic_adapter):
    turn = anthropic_adapter.decode_inbound_response(
        {
            "content": [
                {"type": "thinking", "thinking": "hmm"},
                {"type": "text", "text": "Let me check."},
                {"type": "tool_use", "id": "toolu_1", "name": "code_search", "input": {"pattern": "auth"}},
                {"type": "tool_use", "id": "toolu_2", "name": "read_file", "input": "not-an-object"},
            ]
        }
    )
    assert turn.text == "Let me check."
    first, second = turn.tool_calls
    assert (first.id, first.name, first.input) == ("toolu_1", "code_search", {"pattern": "auth"})
    assert first.parse_error is None
    assert second.id == "toolu_2"
    assert second.parse_error


def test_anthropic_complete_round_trip():
    response = MagicMock()
    response.model_dump.return_value = {"content": [{"type": "text", "text": "hi"}]}
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=response)
    adapter = AnthropicAdapter(ModelConfig(model="claude-test"), client=client)

    turn = asyncio.run(adapter.complete([Turn.user("hello")], []))

    assert turn.text == "hi"
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "hello"}]
    assert "tools" not in kwargs


def test_anthropic_failure_becomes_provider_error():
    client = MagicMock()
    client.messages.create = AsyncMock(side_effect=RuntimeError("boom"))
    adapter = AnthropicAdapter(ModelConfig(model="claude-test"), client=client)

    with pytest.raises(ProviderError) as info:
        asyncio.run(adapter.complete([Turn.user("hello")], []))
    assert info.value.provider == "anthropic"
    assert not info.value.retryable
    assert "boom" in str(info.value)


# ---------------------------------------------------------------------------
# Message-structured (OpenAI)
# ---------------------------------------------------------------------------

@pytest.fixture
def openai_adapter() -> OpenAIAdapter:
    return OpenAIAdapter(ModelConfig(model="gpt-test", provider="openai"), client=MagicMock())


def test_openai_encodes_messages(openai_adapter):
    request = openai_adapter.encode_outbound_turn(_conversation(), [READ_FILE], system="be brief")

    messages = request["messages"]
    assert messages[0] == {"role": "system", "content": "be brief"}
    assert messages[1] == {"role": "user", "content": "read both files"}
    assistant = messages[2]
    assert assistant["content"] == "Reading."
    assert [c["id"] for c in assistant["tool_calls"]] == ["t1", "t2"]
    assert json.loads(assistant["tool_calls"][0]["function"]["arguments"]) == {"path": "a.py"}
    assert messages[3] == {"role": "tool", "tool_call_id": "t1", "content": "print('a')"}
    assert messages[4]["tool_call_id"] == "t2"
    assert request["tools"][0]["type"] == "function"
    assert request["tools"][0]["function"]["name"] == "read_file"
    assert "max_tokens" not in request
    assert "max_completion_tokens" not in request


def test_openai_sends_configured_max_tokens():
    adapter = OpenAIAdapter(ModelConfig(model="gpt-test", provider="openai", max_tokens=512), client=MagicMock())
    request = adapter.encode_outbound_turn([Turn.user("x")], [])
    assert request["max_completion_tokens"] == 512
    assert "max_tokens" not in request


def test_openai_decodes_tool_calls(openai_adapter):
    turn = openai_adapter.decode_inbound_response(
        {
            "choices": [
                {
                    "message": {
                        "content": None,
                        "tool_calls": [
                            {"id": "c1", "function": {"name": "read_file", "arguments": '{"path": "x.py"}'}},
                            {"id": "c2", "function": {"name": "read_file", "arguments": '{"path": '}},
                            {"id": "c3", "function": {"name": "read_file", "arguments": "[1, 2]"}},
                        ],
                    }
                }
            ]
        }
    )
    ok, broken, not_object = turn.tool_calls
    assert turn.text == ""
    assert ok.input == {"path": "x.py"}
    assert ok.parse_error is None
    assert broken.id == "c2"
    assert broken.parse_error.startswith("invalid JSON")
    assert not_object.parse_error == "arguments must be a JSON object"


def test_openai_no_choices_is_empty_turn(openai_adapter):
    turn = openai_adapter.decode_inbound_response({"choices": []})
    assert turn.parts == []


# ---------------------------------------------------------------------------
# Part-structured (Gemini)
# ---------------------------------------------------------------------------

def test_gemini_schema_upper_cases_types():
    schema = to_gemini_schema(
        {
            "type": "object",
            "properties": {
                "tasks": {"type": "array", "items": {"type": "object", "properties": {"name": {"type": "string"}}}},
            },
            "required": ["tasks"],
        }
    )
    assert schema["type"] == "OBJECT"
    assert schema["required"] == ["tasks"]
    assert schema["properties"]["tasks"]["type"] == "ARRAY"
    assert schema["properties"]["tasks"]["items"]["properties"]["name"]["type"] == "STRING"


def test_gemini_encodes_results_positionally():
    adapter = GeminiAdapter(ModelConfig(model="gemini-test", provider="google"), api_key="k")
    request = adapter.encode_outbound_turn(_conversation(), [READ_FILE], system="be brief")

    user, model, results = request["contents"]
    assert user == {"role": "user", "parts": [{"text": "read both files"}]}
    assert model["role"] == "model"
    assert model["parts"][1] == {"functionCall": {"name": "read_file", "args": {"path": "a.py"}}}
    responses = [p["functionResponse"] for p in results["parts"]]
    assert [r["response"]["result"] for r in responses] == ["print('a')", "Error reading file: nope"]
    assert request["systemInstruction"] == {"parts": [{"text": "be brief"}]}
    decl = request["tools"][0]["functionDeclarations"][0]
    assert decl["parameters"]["type"] == "OBJECT"


def test_gemini_omits_parameters_without_properties():
    adapter = GeminiAdapter(ModelConfig(model="gemini-test", provider="google"))
    empty = ToolSchema("feedback_loop", "checks", {"type": "object", "properties": {}})
    assert "parameters" not in adapter.encode_tools([empty])[0]["functionDeclarations"][0]


def test_gemini_synthesizes_call_ids():
    adapter = GeminiAdapter(ModelConfig(model="gemini-test", provider="google"))
    turn = adapter.decode_inbound_response(
        {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "Searching."},
                            {"functionCall": {"name": "code_search", "args": {"pattern": "a"}}},
                            {"functionCall": {"name": "code_search", "args": {"pattern": "b"}}},
                            {"functionCall": {"name": "list_files"}},
                        ]
                    }
                }
            ]
        }
    )
    assert turn.text == "Searching."
    assert [c.id for c in turn.tool_calls] == ["call_0", "call_1", "call_2"]
    assert turn.tool_calls[2].input == {}


def test_gemini_malformed_function_call():
    adapter = GeminiAdapter(ModelConfig(model="gemini-test", provider="google"))
    turn = adapter.decode_inbound_response({"candidates": [{"finishReason": "MALFORMED_FUNCTION_CALL"}]})
    (call,) = turn.tool_calls
    assert call.parse_error


def test_gemini_send_over_http():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "done"}]}}]})

    adapter = GeminiAdapter(
        ModelConfig(model="gemini-test", provider="google", base_url="https://gemini.test/v1beta/"),
        api_key="secret",
        transport=httpx.MockTransport(handler),
    )
    turn = asyncio.run(adapter.complete([Turn.user("hi")], []))

    assert turn.text == "done"
    (request,) = seen
    assert str(request.url) == "https://gemini.test/v1beta/models/gemini-test:generateContent"
    assert request.headers["x-goog-api-key"] == "secret"


def test_gemini_server_error_is_retryable():
    adapter = GeminiAdapter(
        ModelConfig(model="gemini-test", provider="google", base_url="https://gemini.test"),
        transport=httpx.MockTransport(lambda request: httpx.Response(503, json={})),
    )
    with pytest.raises(ProviderError) as info:
        asyncio.run(adapter.complete([Turn.user("hi")], []))
    assert info.value.retryable


def test_gemini_client_error_is_not_retryable():
    adapter = GeminiAdapter(
        ModelConfig(model="gemini-test", provider="google", base_url="https://gemini.test"),
        transport=httpx.MockTransport(lambda request: httpx.Response(400, json={})),
    )
    with pytest.raises(ProviderError) as info:
        asyncio.run(adapter.complete([Turn.user("hi")], []))
    assert not info.value.retryable


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def _settings() -> Settings:
    return Settings(
        anthropic_api_key="a-key",
        openai_api_key="o-key",
        google_api_key="g-key",
        gemini_base_url="https://gemini.test",
    )


@pytest.mark.parametrize(
    "provider,cls",
    [("anthropic", AnthropicAdapter), ("openai", OpenAIAdapter), ("google", GeminiAdapter)],
)
def test_create_adapter_dispatches_on_provider(provider, cls):
    adapter = create_adapter(ModelConfig(model="m", provider=provider), _settings())
    assert isinstance(adapter, cls)
    assert adapter.model == "m"


def test_create_adapter_fills_gemini_base_url():
    adapter = create_adapter(ModelConfig(model="m", provider="google"), _settings())
    assert adapter.base_url == "https://gemini.test"


def test_create_adapter_unknown_provider():
    with pytest.raises(ConfigError):
        create_adapter(ModelConfig(model="m", provider="bogus"), _settings())


def test_default_oracle_request_has_no_token_cap(tmp_path):
    cfg._project_config_cache = None
    try:
        with patch.dict("os.environ", {"GORA_CONFIG_PATH": str(tmp_path / "missing.yaml")}):
            models = resolve_role_models(_settings())
    finally:
        cfg._project_config_cache = None

    oracle = create_adapter(models[AgentRole.ORACLE], _settings())
    request = oracle.encode_outbound_turn([Turn.user("why?")], [])
    assert request["model"] == "o3-mini"
    assert "max_tokens" not in request
    assert "max_completion_tokens" not in request

    # the block protocol requires a cap and falls back to the settings default
    main = create_adapter(models[AgentRole.MAIN], _settings())
    assert main.encode_outbound_turn([Turn.user("hi")], [])["max_tokens"] == 8096


def _after_empty_reply() -> list[Turn]:
    return [Turn.user("hi"), Turn(role="assistant"), Turn.user("next")]


def test_anthropic_skips_empty_assistant_turn(anthropic_adapter):
    messages = anthropic_adapter.encode_outbound_turn(_after_empty_reply(), [])["messages"]
    assert [m["role"] for m in messages] == ["user", "user"]
    assert all(m["content"] for m in messages)


def test_openai_skips_empty_assistant_turn(openai_adapter):
    messages = openai_adapter.encode_outbound_turn(_after_empty_reply(), [])["messages"]
    assert messages == [{"role": "user", "content": "hi"}, {"role": "user", "content": "next"}]


def test_gemini_skips_empty_assistant_turn():
    adapter = GeminiAdapter(ModelConfig(model="gemini-test", provider="google"), api_key="k")
    contents = adapter.encode_outbound_turn(_after_empty_reply(), [])["contents"]
    assert [c["role"] for c in contents] == ["user", "user"]
    assert all(c["parts"] for c in contents)
