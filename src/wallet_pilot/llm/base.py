"""Provider-neutral data structures and base class for LLM backends."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from wallet_pilot.errors import LLMResponseFormatError

logger = logging.getLogger(__name__)

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"```\s*$")


@dataclass
class LLMMessage:
    """A single chat message (``system``, ``user`` or ``assistant``)."""

    role: str
    content: str


@dataclass
class LLMResponse:
    """Unified completion result returned by every provider."""

    content: str
    usage: Optional[dict[str, int]] = None
    stop_reason: Optional[str] = None


def extract_json(text: str) -> Any:
    """Parse a model answer as JSON, tolerating markdown code fences.

    Raises
    ------
    LLMResponseFormatError
        If the (de-fenced) text is not valid JSON.
    """
    cleaned = _FENCE_OPEN_RE.sub("", text.strip())
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned).strip()
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, TypeError) as exc:
        raise LLMResponseFormatError(f"Model response is not valid JSON: {exc}") from exc


class BaseLLMProvider(ABC):
    """Abstract base for all LLM providers.

    Parameters
    ----------
    api_key:
        Credential for the provider's API.
    model:
        Model identifier sent with every request.
    base_url:
        Optional override for OpenAI-compatible or proxied endpoints.
    max_tokens:
        Upper bound on generated tokens per request.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 1024,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        *,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send *messages* and return the model's answer."""

    async def complete_json(
        self,
        system: str,
        prompt: str,
        *,
        temperature: float = 0.0,
    ) -> Any:
        """Ask for a JSON-only answer and return it parsed.

        Network and HTTP failures propagate from :meth:`complete`.  The
        returned value is untrusted; callers must still check its shape.
        """
        response = await self.complete(
            [
                LLMMessage(role="system", content=system),
                LLMMessage(role="user", content=prompt),
            ],
            temperature=temperature,
            json_mode=True,
        )
        if not response.content.strip():
            raise LLMResponseFormatError("Model response did not contain any text")
        return extract_json(response.content)
