"""HTTP client for a swap aggregator (quote + swap-transaction endpoints).

The aggregator prices the route and builds an unsigned transaction; the
transaction is signed locally and submitted through the ledger.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from wallet_pilot.core.actions import SwapMode
from wallet_pilot.errors import SwapAggregatorError

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount

    from wallet_pilot.wallet.ledger import Web3Ledger

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.swap-aggregator.example/v1"


class SwapQuote(BaseModel):
    """Quote returned by ``/quote``.

    Only the fields below are interpreted; everything else the aggregator
    sends is kept and echoed back on ``/swap``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    input_asset: str = Field(alias="inputAsset")
    output_asset: str = Field(alias="outputAsset")
    in_amount: str = Field(alias="inAmount")
    out_amount: str = Field(alias="outAmount")
    slippage_bps: int = Field(alias="slippageBps")
    swap_mode: SwapMode = Field(default=SwapMode.EXACT_IN, alias="swapMode")


def _to_int(value: Any) -> Any:
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return value


class SwapTransaction(BaseModel):
    """Unsigned transaction produced by ``/swap``."""

    to: str
    data: str
    value: int = 0
    gas: Optional[int] = None

    @field_validator("value", "gas", mode="before")
    @classmethod
    def parse_quantity(cls, value: Any) -> Any:
        return _to_int(value)

    def to_tx_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"to": self.to, "data": self.data, "value": self.value}
        if self.gas is not None:
            params["gas"] = self.gas
        return params


class SwapAggregator:
    """Swap collaborator backed by an aggregator HTTP API.

    Parameters
    ----------
    ledger:
        Ledger used to submit the signed swap transaction.
    base_url:
        Aggregator API root; ``/quote`` and ``/swap`` are appended.
    api_key:
        Sent as ``x-api-key`` when given.
    timeout:
        Per-request timeout in seconds.
    client:
        Pre-built ``httpx.AsyncClient`` (mainly for tests).
    """

    def __init__(
        self,
        ledger: Web3Ledger,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.ledger = ledger
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key} if self.api_key else {}

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                resp = await self._client.request(method, url, headers=self._headers(), **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            raise SwapAggregatorError(f"{method} {path} failed: {exc}") from exc

        if resp.status_code // 100 != 2:
            raise SwapAggregatorError(
                f"{method} {path} failed: {resp.status_code} {resp.reason_phrase} {resp.text[:200]}",
                status_code=resp.status_code,
            )
        try:
            body = resp.json()
        except ValueError as exc:
            raise SwapAggregatorError(f"{method} {path} returned invalid JSON") from exc
        if not isinstance(body, dict):
            raise SwapAggregatorError(f"{method} {path} returned {type(body).__name__}, expected object")
        return body

    async def quote(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        slippage_bps: int,
        swap_mode: Optional[SwapMode] = None,
    ) -> SwapQuote:
        """Fetch a route quote for *amount* raw units."""
        params: dict[str, Any] = {
            "inputAsset": input_asset,
            "outputAsset": output_asset,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
        }
        if swap_mode is not None:
            params["swapMode"] = SwapMode(swap_mode).value

        body = await self._request("GET", "/quote", params=params)
        try:
            quote = SwapQuote.model_validate(body)
        except ValidationError as exc:
            raise SwapAggregatorError(f"Malformed quote: {exc}") from exc
        logger.info(
            "Quote %s -> %s: in=%s out=%s (%d bps)",
            quote.input_asset,
            quote.output_asset,
            quote.in_amount,
            quote.out_amount,
            quote.slippage_bps,
        )
        return quote

    async def build_swap_transaction(self, quote: SwapQuote, user_address: str) -> SwapTransaction:
        """Ask the aggregator to build the (unsigned) swap transaction."""
        body = await self._request(
            "POST",
            "/swap",
            json={
                "userAddress": user_address,
                "quoteResponse": quote.model_dump(mode="json", by_alias=True),
            },
        )
        try:
            return SwapTransaction.model_validate(body.get("transaction"))
        except (ValidationError, ValueError) as exc:
            raise SwapAggregatorError(f"Malformed swap transaction: {exc}") from exc

    async def build_and_execute_swap(
        self,
        quote: SwapQuote,
        signer: LocalAccount,
        *,
        wait: bool = True,
    ) -> str:
        """Build the swap for *quote*, sign it locally and submit it."""
        swap_tx = await self.build_swap_transaction(quote, signer.address)
        return await self.ledger.submit_transaction(signer, swap_tx.to_tx_params(), wait=wait)
