"""OpenAI (and OpenAI-compatible) LLM provider using the ``openai`` SDK."""

from __future__ import annotations

import logging

from wallet_pilot.llm.base import BaseLLMProvider, LLMMessage, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """Provider backed by the Chat Completions API.

    ``base_url`` points :class:`openai.AsyncOpenAI` at any compatible server
    (Ollama, Groq, vLLM).  Servers that reject ``response_format`` can still
    be used; the system prompt already demands JSON.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 1024,
    ):
        super().__init__(api_key=api_key, model=model, base_url=base_url, max_tokens=max_tokens)

        try:
            import openai
        except ImportError as exc:
            raise ImportError(
                "The 'openai' package is required for the OpenAI provider. "
                "Install it with: pip install 'wallet-pilot[openai]'"
            ) from exc

        client_kwargs: dict = {"api_key": self.api_key}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    async def complete(
        self,
        messages: list[LLMMessage],
        *,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        request: dict = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if temperature is not None:
            request["temperature"] = temperature
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**request)
        except Exception as exc:
            logger.error("OpenAI API call failed (model=%s): %s", self.model, exc)
            raise

        if not response.choices:
            return LLMResponse(content="")
        choice = response.choices[0]
        usage = None
        if response.usage:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }
        return LLMResponse(
            content=choice.message.content or "",
            usage=usage,
            stop_reason=choice.finish_reason,
        )
