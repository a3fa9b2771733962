"""LLM provider abstraction layer for Wallet Pilot.

Plans are proposed by a model behind a common provider interface
(Anthropic, OpenAI, and any OpenAI-compatible endpoint).
"""

from wallet_pilot.llm.base import (
    BaseLLMProvider,
    LLMMessage,
    LLMResponse,
    extract_json,
)
from wallet_pilot.llm.router import LLMRouter

__all__ = [
    "BaseLLMProvider",
    "LLMMessage",
    "LLMResponse",
    "LLMRouter",
    "extract_json",
]
