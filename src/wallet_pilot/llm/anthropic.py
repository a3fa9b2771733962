"""Anthropic LLM provider using the ``anthropic`` SDK."""

from __future__ import annotations

import logging

from wallet_pilot.llm.base import BaseLLMProvider, LLMMessage, LLMResponse

logger = logging.getLogger(__name__)

# The Messages API has no JSON response mode, so JSON answers are forced by
# prefilling the assistant turn with an opening brace.
_JSON_PREFILL = "{"


class AnthropicProvider(BaseLLMProvider):
    """Provider backed by :class:`anthropic.AsyncAnthropic`."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 1024,
    ):
        super().__init__(api_key=api_key, model=model, base_url=base_url, max_tokens=max_tokens)

        try:
            import anthropic
        except ImportError as exc:
            raise ImportError(
                "The 'anthropic' package is required for the Anthropic provider. "
                "Install it with: pip install 'wallet-pilot[anthropic]'"
            ) from exc

        client_kwargs: dict = {"api_key": self.api_key}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self._client = anthropic.AsyncAnthropic(**client_kwargs)

    def _build_request(self, messages: list[LLMMessage], temperature: float | None, json_mode: bool) -> dict:
        system = "\n".join(m.content for m in messages if m.role == "system")
        turns = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]
        if json_mode:
            turns.append({"role": "assistant", "content": _JSON_PREFILL})

        request: dict = {"model": self.model, "max_tokens": self.max_tokens, "messages": turns}
        if system:
            request["system"] = system
        if temperature is not None:
            request["temperature"] = temperature
        return request

    async def complete(
        self,
        messages: list[LLMMessage],
        *,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        request = self._build_request(messages, temperature, json_mode)
        try:
            response = await self._client.messages.create(**request)
        except Exception as exc:
            logger.error("Anthropic API call failed: %s", exc)
            raise

        text = "".join(block.text for block in response.content if block.type == "text")
        if json_mode:
            text = _JSON_PREFILL + text

        usage = None
        if response.usage:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }
        return LLMResponse(content=text, usage=usage, stop_reason=response.stop_reason)
