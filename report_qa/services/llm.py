# =============================================================================
# Chat Model Abstraction: Pluggable Provider
# =============================================================================
#
# One protocol, two call shapes:
#   chat(text)                    → single-turn call with one user message
#   chat_with_history(messages)   → multi-turn call with a session's history
#
# Concrete implementations:
#   ChatProvider (Protocol)
#   ├── OpenAICompatibleProvider — OpenAI, DashScope compatible mode,
#   │                              DeepSeek, GLM, ... (custom base_url)
#   │                              system turns sent as role "system"
#   ├── AnthropicProvider        — Claude via the native SDK
#   │                              system turns go to the `system=` kwarg
#   └── create_llm_provider()    — picks one from config
#
# All calls are synchronous: the API runs sync endpoints in FastAPI's
# threadpool and the SDK clients are safe to share between threads.
#
# No retries here. Any SDK error is re-raised as ModelInvocationError so the
# answer processor sees one failure type regardless of provider.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from report_qa.config import Settings, settings
from report_qa.errors import ModelInvocationError
from report_qa.models.domain import ChatMessage, MessageRole

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class ChatProvider(Protocol):
    """Text-in, text-out chat capability used by the answer processor."""

    def chat(self, text: str) -> str:
        ...

    def chat_with_history(self, messages: Sequence[ChatMessage]) -> str:
        """
        Complete a conversation.

        Args:
            messages: Session history in order. System turns are allowed
                anywhere; each provider maps them to its own convention.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: OpenAI-Compatible
# ---------------------------------------------------------------------------

_OPENAI_ROLES = {
    MessageRole.SYSTEM: "system",
    MessageRole.USER: "user",
    MessageRole.AI: "assistant",
}


class OpenAICompatibleProvider:
    """
    Provider for any API that follows the OpenAI chat completions spec.

    Switching vendors is a config change:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://dashscope.aliyuncs.com/compatible-mode/v1
        LLM_API_KEY=your-key
        LLM_MODEL=qwen-plus
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        config: Settings | None = None,
    ) -> None:
        from openai import OpenAI

        cfg = config or settings
        resolved_key = api_key or cfg.llm_api_key or cfg.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        resolved_base_url = base_url or cfg.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model or cfg.llm_model
        self._temperature = cfg.llm_temperature
        self._max_tokens = cfg.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    def chat(self, text: str) -> str:
        return self.chat_with_history([ChatMessage(MessageRole.USER, text)])

    def chat_with_history(self, messages: Sequence[ChatMessage]) -> str:
        payload = [
            {"role": _OPENAI_ROLES[m.role], "content": m.content}
            for m in messages
        ]
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=payload,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except Exception as exc:
            raise ModelInvocationError(
                f"Chat completion failed ({self._model}): {exc}"
            ) from exc

        usage = response.usage
        logger.debug(
            "Chat completion: %d messages, %d prompt / %d completion tokens",
            len(payload),
            usage.prompt_tokens if usage else 0,
            usage.completion_tokens if usage else 0,
        )
        return response.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# Implementation 2: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Claude via the native Anthropic SDK.

    Anthropic takes the system prompt as a top-level `system=` kwarg, not as
    a message. System turns from the history are concatenated into it.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        config: Settings | None = None,
    ) -> None:
        from anthropic import Anthropic

        cfg = config or settings
        resolved_key = api_key or cfg.llm_api_key or cfg.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = Anthropic(api_key=resolved_key)
        self._model = model or cfg.llm_model
        self._temperature = cfg.llm_temperature
        self._max_tokens = cfg.llm_max_tokens

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    def chat(self, text: str) -> str:
        return self.chat_with_history([ChatMessage(MessageRole.USER, text)])

    def chat_with_history(self, messages: Sequence[ChatMessage]) -> str:
        system_parts = [m.content for m in messages if m.role is MessageRole.SYSTEM]
        turns = [
            {
                "role": "assistant" if m.role is MessageRole.AI else "user",
                "content": m.content,
            }
            for m in messages
            if m.role is not MessageRole.SYSTEM
        ]

        kwargs: dict = {
            "model": self._model,
            "messages": turns,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        try:
            response = self._client.messages.create(**kwargs)
        except Exception as exc:
            raise ModelInvocationError(
                f"Claude request failed ({self._model}): {exc}"
            ) from exc

        for block in response.content:
            if block.type == "text":
                return block.text
        return ""


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def create_llm_provider(config: Settings | None = None) -> ChatProvider:
    """
    Build the provider named by `llm_provider`:
    - "openai_compatible" → OpenAICompatibleProvider (default)
    - "anthropic"         → AnthropicProvider
    """
    cfg = config or settings
    if cfg.llm_provider == "anthropic":
        return AnthropicProvider(config=cfg)
    if cfg.llm_provider != "openai_compatible":
        raise ValueError(f"Unknown llm_provider '{cfg.llm_provider}'")
    return OpenAICompatibleProvider(config=cfg)
