"""Deterministic policy checks for agent-proposed plans.

``validate_plan`` is a pure function: it never performs I/O, never mutates
its inputs, and returns every violation instead of stopping at the first.
An empty allowlist with the matching ``allow_all_*`` flag off denies every
action of that kind.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from wallet_pilot.core.actions import (
    U16_MAX,
    U64_MAX,
    Action,
    NoopAction,
    Plan,
    SwapAction,
    TransferAction,
)
from wallet_pilot.errors import UnsupportedActionError

_UINT_RE = re.compile(r"[0-9]+")


class Policy(BaseModel):
    """Guardrails bounding which actions an agent may execute.

    Immutable; one instance can be shared by concurrent validations.
    """

    model_config = ConfigDict(frozen=True)

    allowed_recipients: frozenset[str] = frozenset()
    allow_all_transfers: bool = False
    max_transfer_lamports: Optional[int] = Field(default=None, ge=0, le=U64_MAX)

    allowed_mints: frozenset[str] = frozenset()
    allow_all_swaps: bool = False
    max_swap_amount: Optional[int] = Field(default=None, ge=0, le=U64_MAX)

    max_slippage_bps: Optional[int] = Field(default=None, ge=0, le=U16_MAX)

    @field_validator("allowed_recipients", "allowed_mints", mode="before")
    @classmethod
    def strip_entries(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = [value]
        return frozenset(str(item).strip() for item in value)

    @field_serializer("allowed_recipients", "allowed_mints")
    def serialize_allowlist(self, value: frozenset[str]) -> list[str]:
        return sorted(value)


@dataclass(frozen=True)
class PolicyViolation:
    """One failed rule, tied to a field of one action."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def parse_u64(value: Any) -> int | None:
    """Parse a decimal u64 string; ``None`` if it is not one."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not _UINT_RE.fullmatch(text):
        return None
    number = int(text)
    if number > U64_MAX:
        return None
    return number


def _is_allowlisted(value: str, allowlist: Iterable[str]) -> bool:
    return value.strip() in allowlist


def _check_amount(
    amount: str,
    limit: int | None,
    limit_name: str,
    path: str,
    label: str,
) -> list[PolicyViolation]:
    parsed = parse_u64(amount)
    if parsed is None:
        return [PolicyViolation(f"{path}.amount", "amount is not an unsigned 64-bit integer")]
    if limit is not None and parsed > limit:
        return [PolicyViolation(f"{path}.amount", f"{label} exceeds {limit_name} ({limit})")]
    return []


def _check_transfer(action: TransferAction, policy: Policy, path: str) -> list[PolicyViolation]:
    violations: list[PolicyViolation] = []
    if not policy.allow_all_transfers and not _is_allowlisted(action.to, policy.allowed_recipients):
        violations.append(PolicyViolation(f"{path}.to", "recipient is not allowlisted"))
    violations.extend(
        _check_amount(action.amount, policy.max_transfer_lamports, "max_transfer_lamports", path, "transfer")
    )
    return violations


def _check_swap(action: SwapAction, policy: Policy, path: str) -> list[PolicyViolation]:
    violations: list[PolicyViolation] = []
    if not policy.allow_all_swaps:
        if not _is_allowlisted(action.input_asset, policy.allowed_mints):
            violations.append(PolicyViolation(f"{path}.inputAsset", "input asset is not allowlisted"))
        if not _is_allowlisted(action.output_asset, policy.allowed_mints):
            violations.append(PolicyViolation(f"{path}.outputAsset", "output asset is not allowlisted"))
    violations.extend(
        _check_amount(action.amount, policy.max_swap_amount, "max_swap_amount", path, "swap")
    )
    if (
        action.slippage_bps is not None
        and policy.max_slippage_bps is not None
        and action.slippage_bps > policy.max_slippage_bps
    ):
        violations.append(
            PolicyViolation(
                f"{path}.slippageBps",
                f"slippage exceeds max_slippage_bps ({policy.max_slippage_bps})",
            )
        )
    return violations


def validate_action(action: Action, policy: Policy, path: str) -> list[PolicyViolation]:
    """Check a single action; *path* prefixes each violation's field path."""
    if isinstance(action, NoopAction):
        return []
    if isinstance(action, TransferAction):
        return _check_transfer(action, policy, path)
    if isinstance(action, SwapAction):
        return _check_swap(action, policy, path)
    raise UnsupportedActionError(action)


def validate_plan(plan: Plan, policy: Policy) -> list[PolicyViolation]:
    """Return every policy violation in *plan* (empty list means accepted).

    Raises
    ------
    UnsupportedActionError
        If the plan holds an action type this engine does not know.
    """
    violations: list[PolicyViolation] = []
    for index, action in enumerate(plan.actions):
        try:
            violations.extend(validate_action(action, policy, f"actions[{index}]"))
        except UnsupportedActionError:
            raise UnsupportedActionError(action, index=index) from None
    return violations
