from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from wallet_pilot.errors import LedgerNetworkError, TransactionRejectedError
from wallet_pilot.llm.base import BaseLLMProvider, LLMResponse
from wallet_pilot.wallet.ledger import TokenBalance


TX_HASH = b"\x12" * 32


def make_fake_w3(base_fee=10**9, status=1):
    """AsyncWeb3 stand-in whose eth methods are AsyncMocks."""
    eth = SimpleNamespace(
        get_balance=AsyncMock(return_value=5 * 10**18),
        get_transaction_count=AsyncMock(return_value=7),
        get_block=AsyncMock(return_value={"baseFeePerGas": base_fee}),
        estimate_gas=AsyncMock(return_value=21000),
        send_raw_transaction=AsyncMock(return_value=TX_HASH),
        wait_for_transaction_receipt=AsyncMock(return_value={"status": status, "blockNumber": 99}),
    )
    return SimpleNamespace(eth=eth)


class FakeLedger:
    """Records transfers; fails on the transfer numbers listed in ``fail_on``."""

    def __init__(self, fail_on: tuple[int, ...] = ()):
        self.calls: list[tuple] = []
        self.fail_on = fail_on
        self.balances: dict[str, int] = {}
        self.token_balances: dict[tuple[str, str], int] = {}

    async def get_balance(self, address: str) -> int:
        return self.balances.get(address, 0)

    async def get_token_balance(self, owner, token):
        return TokenBalance(token=token, amount=self.token_balances.get((owner, token), 0), decimals=6)

    async def transfer(self, signer, to, amount, *, wait=True):
        self.calls.append(("transfer", to, amount, wait))
        if len(self.calls) in self.fail_on:
            raise LedgerNetworkError("connection reset")
        return f"0xtransfer{len(self.calls)}"


class FakeSwaps:
    def __init__(self, fail_submit: bool = False):
        self.calls: list[tuple] = []
        self.fail_submit = fail_submit

    async def quote(self, input_asset, output_asset, amount, slippage_bps, swap_mode=None):
        self.calls.append(("quote", input_asset, output_asset, amount, slippage_bps, swap_mode))
        return {"inputAsset": input_asset, "outputAsset": output_asset, "inAmount": str(amount)}

    async def build_and_execute_swap(self, quote, signer, *, wait=True):
        self.calls.append(("swap", quote, wait))
        if self.fail_submit:
            raise TransactionRejectedError("swap reverted")
        return f"0xswap{len(self.calls)}"


class FakeProvider(BaseLLMProvider):
    """Returns a canned answer and remembers the prompts it was given."""

    def __init__(self, answer: str = "", error: Exception | None = None):
        super().__init__(api_key="test", model="fake")
        self.answer = answer
        self.error = error
        self.requests: list = []

    async def complete(self, messages, *, temperature=None, json_mode=False):
        self.requests.append({"messages": messages, "temperature": temperature, "json_mode": json_mode})
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.answer)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def swaps() -> FakeSwaps:
    return FakeSwaps()


@pytest.fixture
def signer():
    return object()
