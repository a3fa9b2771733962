"""Actions an agent may propose, and the plan that orders them.

Amounts are always carried as decimal strings holding an unsigned 64-bit
integer (the chain's smallest unit).  Addresses and asset ids are opaque
strings; the collaborator that consumes them is responsible for checking
their format.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

U64_MAX = 2**64 - 1
U16_MAX = 2**16 - 1


class SwapMode(str, Enum):
    EXACT_IN = "ExactIn"
    EXACT_OUT = "ExactOut"


def _amount_to_text(value: Any) -> Any:
    """Accept JSON integers for amounts but store them as decimal text.

    Floats are kept as their textual form so the policy engine rejects them
    instead of silently rounding.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


class _ActionModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and absent optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NoopAction(_ActionModel):
    """Do nothing.  Always allowed."""

    type: Literal["noop"] = "noop"
    reason: Optional[str] = None


class TransferAction(_ActionModel):
    """Native-currency transfer from the agent wallet."""

    type: Literal["transfer"] = "transfer"
    to: str
    amount: str

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, value: Any) -> Any:
        return _amount_to_text(value)


class SwapAction(_ActionModel):
    """Swap ``amount`` of ``input_asset`` for ``output_asset`` via the aggregator.

    With ``ExactOut`` the amount is the desired output; otherwise the input.
    """

    type: Literal["swap"] = "swap"
    input_asset: str = Field(alias="inputAsset")
    output_asset: str = Field(alias="outputAsset")
    amount: str
    slippage_bps: Optional[int] = Field(default=None, alias="slippageBps", ge=0, le=U16_MAX)
    swap_mode: Optional[SwapMode] = Field(default=None, alias="swapMode")

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, value: Any) -> Any:
        return _amount_to_text(value)


Action = Annotated[
    Union[NoopAction, TransferAction, SwapAction],
    Field(discriminator="type"),
]

_ACTION_ADAPTER: TypeAdapter[Action] = TypeAdapter(Action)


def parse_action(data: Any) -> Action:
    """Validate a wire dict into the matching action model.

    Raises ``pydantic.ValidationError`` for unknown types or bad fields.
    """
    return _ACTION_ADAPTER.validate_python(data)


class Plan(BaseModel):
    """An ordered, immutable list of actions proposed for one goal.

    Action order is execution order.
    """

    model_config = ConfigDict(frozen=True)

    goal: str
    summary: Optional[str] = None
    actions: tuple[Action, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def noop(cls, goal: str, summary: str) -> Plan:
        """A harmless single-noop plan."""
        return cls(goal=goal, summary=summary, actions=(NoopAction(),))
