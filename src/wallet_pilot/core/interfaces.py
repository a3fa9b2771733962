"""Capabilities the core consumes from the outside world."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Protocol, Union

from wallet_pilot.core.actions import Action, SwapMode

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount

ConfirmFn = Callable[[Action], Union[bool, Awaitable[bool]]]


class LedgerClient(Protocol):
    async def get_balance(self, address: str) -> int: ...

    async def get_token_balance(self, owner: str, token: str) -> Any: ...

    async def transfer(
        self,
        signer: LocalAccount,
        to: str,
        amount: int,
        *,
        wait: bool = True,
    ) -> str: ...


class SwapClient(Protocol):
    async def quote(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        slippage_bps: int,
        swap_mode: Optional[SwapMode] = None,
    ) -> Any: ...

    async def build_and_execute_swap(
        self,
        quote: Any,
        signer: LocalAccount,
        *,
        wait: bool = True,
    ) -> str: ...
