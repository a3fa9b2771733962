"""Async Web3 ledger adapter: balances, transfers and raw submission."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from wallet_pilot.errors import (
    InsufficientFundsError,
    InvalidAddressError,
    LedgerError,
    LedgerNetworkError,
    TransactionRejectedError,
)
from wallet_pilot.wallet.chains import Chain, get_chain

logger = logging.getLogger(__name__)

_PRIORITY_FEE_GWEI = 1.5
_FEE_FIELDS = ("gasPrice", "maxFeePerGas", "maxPriorityFeePerGas")

# Read-only subset of the ERC-20 interface.
ERC20_ABI: list[dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


@dataclass(frozen=True)
class TokenBalance:
    """ERC-20 holding of one owner: raw units plus the token's decimals."""

    token: str
    amount: int
    decimals: int

    @property
    def ui_amount(self) -> Decimal:
        return (Decimal(self.amount) / (Decimal(10) ** self.decimals)).normalize()


def classify_error(exc: BaseException) -> LedgerError:
    """Map a web3/transport exception onto the ledger error taxonomy."""
    if isinstance(exc, LedgerError):
        return exc
    message = str(exc) or exc.__class__.__name__
    if "insufficient funds" in message.lower():
        return InsufficientFundsError(message)
    if isinstance(exc, TimeExhausted):
        return LedgerNetworkError(f"Transaction was not settled in time: {message}")
    if isinstance(exc, (Web3Exception, ValueError, TypeError)):
        return TransactionRejectedError(message)
    return LedgerNetworkError(message)


def _checksum(address: str) -> str:
    if not Web3.is_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


class Web3Ledger:
    """Ledger collaborator for one EVM chain.

    Signing happens locally with the caller's ``LocalAccount``; only the
    signed raw transaction is sent to the RPC node.

    Parameters
    ----------
    chain:
        A :class:`Chain` or the name of one in the registry.
    rpc_url:
        Override for the chain's default RPC endpoint.
    settlement_timeout:
        Seconds to wait for a receipt when ``wait=True``.
    w3:
        Pre-built ``AsyncWeb3`` instance (mainly for tests).
    """

    def __init__(
        self,
        chain: Chain | str = "ethereum",
        rpc_url: Optional[str] = None,
        settlement_timeout: float = 120.0,
        w3: Optional[AsyncWeb3] = None,
    ):
        self.chain = get_chain(chain) if isinstance(chain, str) else chain
        self.settlement_timeout = settlement_timeout
        if w3 is None:
            w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url or self.chain.rpc_url))
            if self.chain.poa:
                w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        self.w3 = w3

    async def get_balance(self, address: str) -> int:
        """Native balance of *address* in wei."""
        checksum = _checksum(address)
        try:
            return int(await self.w3.eth.get_balance(checksum))
        except Exception as exc:
            raise classify_error(exc) from exc

    async def get_token_balance(self, owner: str, token: str) -> TokenBalance:
        """ERC-20 balance of *owner* for the token contract at *token*."""
        owner_checksum = _checksum(owner)
        token_checksum = _checksum(token)
        contract = self.w3.eth.contract(address=token_checksum, abi=ERC20_ABI)
        try:
            amount = await contract.functions.balanceOf(owner_checksum).call()
            decimals = await contract.functions.decimals().call()
        except Exception as exc:
            raise classify_error(exc) from exc
        return TokenBalance(token=token_checksum, amount=int(amount), decimals=int(decimals))

    async def transfer(
        self,
        signer: LocalAccount,
        to: str,
        amount: int,
        *,
        wait: bool = True,
    ) -> str:
        """Send *amount* wei from *signer* to *to*; return the tx hash."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        tx = {"to": _checksum(to), "value": amount}
        logger.info("Transferring %d wei to %s on %s", amount, tx["to"], self.chain.name)
        return await self.submit_transaction(signer, tx, wait=wait)

    async def submit_transaction(
        self,
        signer: LocalAccount,
        tx: dict[str, Any],
        *,
        wait: bool = True,
    ) -> str:
        """Complete, sign and send *tx*; optionally wait for settlement.

        Fills nonce and chain id, EIP-1559 fees (legacy gas price on chains
        without a base fee) and a gas estimate when the caller gave none.
        """
        tx = dict(tx)
        if tx.get("to"):
            tx["to"] = _checksum(tx["to"])
        try:
            tx["from"] = signer.address
            tx["chainId"] = self.chain.chain_id
            tx["nonce"] = await self.w3.eth.get_transaction_count(signer.address, "pending")
            if not any(name in tx for name in _FEE_FIELDS):
                await self._apply_fees(tx)
            if "gas" not in tx:
                tx["gas"] = await self.w3.eth.estimate_gas(tx)

            signed = signer.sign_transaction(tx)
            tx_hash = Web3.to_hex(await self.w3.eth.send_raw_transaction(signed.raw_transaction))
        except Exception as exc:
            raise classify_error(exc) from exc

        logger.info("Submitted tx %s on %s", tx_hash, self.chain.name)
        if wait:
            await self.wait_for_settlement(tx_hash)
        return tx_hash

    async def wait_for_settlement(self, tx_hash: str) -> None:
        """Block until *tx_hash* is mined; raise if it reverted."""
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.settlement_timeout
            )
        except Exception as exc:
            raise classify_error(exc) from exc
        if receipt["status"] != 1:
            raise TransactionRejectedError(f"Transaction {tx_hash} reverted")
        logger.info("Tx %s settled in block %s", tx_hash, receipt["blockNumber"])

    async def _apply_fees(self, tx: dict[str, Any]) -> None:
        latest = await self.w3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        if base_fee is not None:
            priority = Web3.to_wei(_PRIORITY_FEE_GWEI, "gwei")
            tx["maxFeePerGas"] = base_fee * 2 + priority
            tx["maxPriorityFeePerGas"] = priority
        else:
            tx["gasPrice"] = await self.w3.eth.gas_price
