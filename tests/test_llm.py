import asyncio

import pytest

from conftest import FakeProvider
from wallet_pilot.config import LLMConfig, LLMProviderConfig
from wallet_pilot.errors import ConfigurationError, LLMResponseFormatError
from wallet_pilot.llm import LLMRouter, extract_json


@pytest.mark.parametrize(
    "text",
    [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}\n```  ',
        '  {"a": 1}\n',
    ],
)
def test_extract_json_tolerates_fences(text):
    assert extract_json(text) == {"a": 1}


def test_extract_json_rejects_prose():
    with pytest.raises(LLMResponseFormatError):
        extract_json("Sure! Here is your plan.")


def test_complete_json_sends_system_and_user_messages():
    provider = FakeProvider('{"ok": true}')
    result = asyncio.run(provider.complete_json("be strict", "do it"))

    assert result == {"ok": True}
    request = provider.requests[0]
    assert [m.role for m in request["messages"]] == ["system", "user"]
    assert request["json_mode"] is True
    assert request["temperature"] == 0.0


def test_complete_json_rejects_empty_answer():
    with pytest.raises(LLMResponseFormatError):
        asyncio.run(FakeProvider("   ").complete_json("s", "p"))


def _config(**kwargs) -> LLMConfig:
    return LLMConfig(**kwargs)


def test_router_is_configured():
    assert not LLMRouter(_config()).is_configured()
    assert not LLMRouter(
        _config(anthropic=LLMProviderConfig(api_key="${ANTHROPIC_API_KEY}", model="m"))
    ).is_configured()
    assert LLMRouter(_config(anthropic=LLMProviderConfig(api_key="k", model="m"))).is_configured()
    assert not LLMRouter(_config(anthropic=LLMProviderConfig(api_key="k", model="m"))).is_configured("openai")


@pytest.mark.parametrize(
    "config, name",
    [
        (LLMConfig(), None),
        (LLMConfig(), "mystery"),
        (LLMConfig(anthropic=LLMProviderConfig(api_key="", model="m")), None),
        (LLMConfig(anthropic=LLMProviderConfig(api_key="${NOPE}", model="m")), None),
        (LLMConfig(anthropic=LLMProviderConfig(api_key="k", model="")), None),
    ],
)
def test_router_configuration_errors(config, name):
    with pytest.raises(ConfigurationError):
        LLMRouter(config).get_provider(name)


def test_anthropic_json_mode_prefills_brace():
    pytest.importorskip("anthropic")
    from types import SimpleNamespace
    from unittest.mock import AsyncMock

    from wallet_pilot.llm.anthropic import AnthropicProvider

    provider = AnthropicProvider(api_key="k", model="claude-test")
    reply = SimpleNamespace(
        content=[SimpleNamespace(type="text", text='"actions": []}')],
        usage=SimpleNamespace(input_tokens=3, output_tokens=4),
        stop_reason="end_turn",
    )
    provider._client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(return_value=reply)))

    result = asyncio.run(provider.complete_json("system text", "prompt"))

    assert result == {"actions": []}
    request = provider._client.messages.create.await_args.kwargs
    assert request["system"] == "system text"
    assert request["messages"][-1] == {"role": "assistant", "content": "{"}
    assert request["temperature"] == 0.0


def test_openai_json_mode_requests_json_object():
    pytest.importorskip("openai")
    from types import SimpleNamespace
    from unittest.mock import AsyncMock

    from wallet_pilot.llm.openai import OpenAIProvider

    provider = OpenAIProvider(api_key="k", model="gpt-test")
    reply = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content='{"actions": []}'), finish_reason="stop")],
        usage=None,
    )
    provider._client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock(return_value=reply)))
    )

    assert asyncio.run(provider.complete_json("s", "p")) == {"actions": []}
    request = provider._client.chat.completions.create.await_args.kwargs
    assert request["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in request["messages"]] == ["system", "user"]
