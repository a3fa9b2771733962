"""Resolve the configured LLM provider for plan proposal."""

from __future__ import annotations

import importlib
import logging
import re
from typing import TYPE_CHECKING

from wallet_pilot.errors import ConfigurationError
from wallet_pilot.llm.base import BaseLLMProvider

if TYPE_CHECKING:
    from wallet_pilot.config import LLMConfig, LLMProviderConfig

logger = logging.getLogger(__name__)

_UNEXPANDED_RE = re.compile(r"^\$\{([^}]+)\}$")

# Provider name -> implementation class.  Imported lazily so the optional
# SDKs are only needed for the provider actually in use.
_PROVIDER_FACTORIES: dict[str, str] = {
    "anthropic": "wallet_pilot.llm.anthropic.AnthropicProvider",
    "openai": "wallet_pilot.llm.openai.OpenAIProvider",
}


def _import_provider_class(dotted_path: str) -> type[BaseLLMProvider]:
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    if not (isinstance(cls, type) and issubclass(cls, BaseLLMProvider)):
        raise TypeError(
            f"Expected a BaseLLMProvider subclass at '{dotted_path}', got {cls!r}"
        )
    return cls


class LLMRouter:
    """Builds (and caches) provider instances from an ``LLMConfig``.

    Parameters
    ----------
    llm_config:
        The ``llm`` section of the Wallet Pilot configuration.
    """

    def __init__(self, llm_config: LLMConfig):
        self._config = llm_config
        self._providers: dict[str, BaseLLMProvider] = {}

    def _provider_config(self, name: str) -> LLMProviderConfig | None:
        return getattr(self._config, name, None)

    def is_configured(self, provider_name: str | None = None) -> bool:
        """True when the provider has a config block with a usable API key.

        A key still holding an unexpanded ``${VAR}`` placeholder does not count.
        """
        name = provider_name or self._config.default_provider
        block = self._provider_config(name) if name else None
        return bool(block and block.api_key and not _UNEXPANDED_RE.match(block.api_key))

    def get_provider(
        self,
        provider_name: str | None = None,
        model_override: str | None = None,
    ) -> BaseLLMProvider:
        """Get or create a provider instance.

        Raises
        ------
        ConfigurationError
            If the provider is unknown, unconfigured, or lacks an API key
            or model.
        """
        name = provider_name or self._config.default_provider
        if not name:
            raise ConfigurationError("No LLM provider named and no default_provider configured.")

        cache_key = f"{name}:{model_override}" if model_override else name
        if cache_key in self._providers:
            return self._providers[cache_key]

        if name not in _PROVIDER_FACTORIES:
            raise ConfigurationError(
                f"Unknown provider '{name}'. Supported providers: {sorted(_PROVIDER_FACTORIES)}"
            )

        block = self._provider_config(name)
        if block is None:
            raise ConfigurationError(
                f"Provider '{name}' is not configured. "
                f"Add an 'llm.{name}' section to your configuration."
            )
        if not block.api_key:
            raise ConfigurationError(
                f"API key for provider '{name}' is empty. Set it in the configuration "
                f"file or via an environment placeholder (e.g. ${{ANTHROPIC_API_KEY}})."
            )
        unexpanded = _UNEXPANDED_RE.match(block.api_key)
        if unexpanded:
            raise ConfigurationError(
                f"API key for provider '{name}' references ${unexpanded.group(1)}, "
                f"which is not set in the environment."
            )

        model = model_override or block.model
        if not model:
            raise ConfigurationError(f"No model specified for provider '{name}'.")

        provider_cls = _import_provider_class(_PROVIDER_FACTORIES[name])
        provider = provider_cls(
            api_key=block.api_key,
            model=model,
            base_url=block.base_url,
            max_tokens=block.max_tokens,
        )
        self._providers[cache_key] = provider
        logger.info(
            "Created %s provider (model=%s, base_url=%s)",
            name,
            model,
            block.base_url or "default",
        )
        return provider
