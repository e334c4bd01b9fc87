# =============================================================================
# Unit Tests — Chat Providers
# =============================================================================
#
# SDK clients are patched at their import location; no network calls.
# =============================================================================

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from report_qa.config import Settings
from report_qa.errors import ModelInvocationError
from report_qa.models.domain import ChatMessage, MessageRole
from report_qa.services.llm import (
    AnthropicProvider,
    OpenAICompatibleProvider,
    create_llm_provider,
)

HISTORY = [
    ChatMessage(MessageRole.SYSTEM, "You answer questions about reports."),
    ChatMessage(MessageRole.USER, "Revenue?"),
    ChatMessage(MessageRole.AI, "1234500"),
    ChatMessage(MessageRole.USER, "Headcount?"),
]


def _settings(**overrides) -> Settings:
    values = {"llm_api_key": "test-key", "llm_model": "test-model", **overrides}
    return Settings(_env_file=None, **values)


def _openai_response(text):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=2),
    )


class TestOpenAICompatibleProvider:
    def test_roles_mapped(self):
        with patch("openai.OpenAI") as client_cls:
            client = client_cls.return_value
            client.chat.completions.create.return_value = _openai_response("5000")
            provider = OpenAICompatibleProvider(config=_settings())

            assert provider.chat_with_history(HISTORY) == "5000"

        sent = client.chat.completions.create.call_args.kwargs
        assert [m["role"] for m in sent["messages"]] == ["system", "user", "assistant", "user"]
        assert sent["model"] == "test-model"

    def test_single_turn_is_one_user_message(self):
        with patch("openai.OpenAI") as client_cls:
            client = client_cls.return_value
            client.chat.completions.create.return_value = _openai_response("ok")
            OpenAICompatibleProvider(config=_settings()).chat("hello")

        sent = client.chat.completions.create.call_args.kwargs["messages"]
        assert sent == [{"role": "user", "content": "hello"}]

    def test_base_url_passed_through(self):
        with patch("openai.OpenAI") as client_cls:
            OpenAICompatibleProvider(config=_settings(llm_base_url="https://llm.local/v1"))
        assert client_cls.call_args.kwargs["base_url"] == "https://llm.local/v1"

    def test_sdk_error_wrapped(self):
        with patch("openai.OpenAI") as client_cls:
            client_cls.return_value.chat.completions.create.side_effect = RuntimeError("timeout")
            provider = OpenAICompatibleProvider(config=_settings())
            with pytest.raises(ModelInvocationError, match="timeout"):
                provider.chat("hello")

    def test_missing_key(self):
        with pytest.raises(ValueError):
            OpenAICompatibleProvider(config=_settings(llm_api_key="", openai_api_key=""))


class TestAnthropicProvider:
    def test_system_turns_moved_to_kwarg(self):
        with patch("anthropic.Anthropic") as client_cls:
            client = client_cls.return_value
            client.messages.create.return_value = SimpleNamespace(
                content=[SimpleNamespace(type="text", text="5000")],
            )
            provider = AnthropicProvider(config=_settings())

            assert provider.chat_with_history(HISTORY) == "5000"

        sent = client.messages.create.call_args.kwargs
        assert sent["system"] == "You answer questions about reports."
        assert [m["role"] for m in sent["messages"]] == ["user", "assistant", "user"]

    def test_no_system_kwarg_without_system_turns(self):
        with patch("anthropic.Anthropic") as client_cls:
            client = client_cls.return_value
            client.messages.create.return_value = SimpleNamespace(content=[])
            assert AnthropicProvider(config=_settings()).chat("hi") == ""

        assert "system" not in client.messages.create.call_args.kwargs

    def test_sdk_error_wrapped(self):
        with patch("anthropic.Anthropic") as client_cls:
            client_cls.return_value.messages.create.side_effect = RuntimeError("overloaded")
            with pytest.raises(ModelInvocationError):
                AnthropicProvider(config=_settings()).chat("hi")


class TestCreateLLMProvider:
    def test_default_is_openai_compatible(self):
        with patch("openai.OpenAI"):
            provider = create_llm_provider(_settings())
        assert isinstance(provider, OpenAICompatibleProvider)

    def test_anthropic(self):
        with patch("anthropic.Anthropic", MagicMock()):
            provider = create_llm_provider(_settings(llm_provider="anthropic"))
        assert isinstance(provider, AnthropicProvider)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_llm_provider(_settings(llm_provider="carrier-pigeon"))
