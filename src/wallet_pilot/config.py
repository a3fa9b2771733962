"""Configuration for Wallet Pilot.

Loads ``.wallet-pilot/config.yaml``, expands ``${VAR}`` environment
placeholders, and validates the result into :class:`PilotConfig`.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from wallet_pilot.core.policy import Policy

CONFIG_DIRNAME = ".wallet-pilot"
CONFIG_FILENAME = "config.yaml"


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    Unset variables are left as-is so that validation can catch them later.
    """

    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class LLMProviderConfig(BaseModel):
    """Configuration for a single LLM provider."""

    api_key: str = ""
    model: str = ""
    base_url: Optional[str] = None  # For OpenAI-compatible endpoints
    max_tokens: int = 1024


class LLMConfig(BaseModel):
    default_provider: str = "anthropic"
    anthropic: Optional[LLMProviderConfig] = None
    openai: Optional[LLMProviderConfig] = None


class LedgerConfig(BaseModel):
    """Which chain to transact on, and how long to wait for receipts."""

    chain: str = "ethereum"
    rpc_url: Optional[str] = None  # overrides the chain's default RPC
    wait_for_settlement: bool = True
    settlement_timeout: float = 120.0


class SwapConfig(BaseModel):
    enabled: bool = False
    base_url: str = "https://api.swap-aggregator.example/v1"
    api_key: str = ""
    default_slippage_bps: int = Field(default=50, ge=0, le=10_000)
    timeout: float = 15.0


class AgentSettings(BaseModel):
    max_actions: int = Field(default=3, ge=1)


class PilotConfig(BaseModel):
    """Root configuration object."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    swap: SwapConfig = Field(default_factory=SwapConfig)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    policy: Policy = Field(default_factory=Policy)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_config_dir(base: Path | None = None, *, create: bool = False) -> Path:
    """Return the ``.wallet-pilot/`` directory under *base* (default: cwd)."""
    config_dir = (base or Path.cwd()) / CONFIG_DIRNAME
    if create:
        config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_wallet_dir(base: Path | None = None) -> Path:
    return get_config_dir(base) / "wallet"


def load_config(path: Path) -> PilotConfig:
    """Load and validate a configuration YAML file.

    ``${VAR}`` placeholders are expanded before validation.
    """
    raw_data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return PilotConfig.model_validate(_expand_env_recursive(raw_data))


def save_config(config: PilotConfig, path: Path) -> None:
    """Serialize a :class:`PilotConfig` to YAML."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(data, fh, default_flow_style=False, sort_keys=False)
