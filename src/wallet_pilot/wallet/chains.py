"""Registry of EVM networks the ledger can transact on.

A chain is looked up either by its short name (``"base"``) or by its
EIP-155 chain id (``8453`` or ``"8453"``).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

_WEI_PER_NATIVE = Decimal(10) ** 18


@dataclass(frozen=True)
class Chain:
    name: str
    chain_id: int
    rpc_url: str
    explorer_url: str
    native_symbol: str = "ETH"
    # L2s and sidechains whose blocks need ExtraDataToPOAMiddleware
    poa: bool = False

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"

    def format_native(self, wei: int) -> str:
        """Render a wei amount as ``"1.5 ETH"``."""
        value = (Decimal(wei) / _WEI_PER_NATIVE).normalize()
        return f"{value:f} {self.native_symbol}"


_REGISTRY: tuple[Chain, ...] = (
    Chain("ethereum", 1, "https://eth.llamarpc.com", "https://etherscan.io"),
    Chain("sepolia", 11155111, "https://rpc.sepolia.org", "https://sepolia.etherscan.io"),
    Chain("base", 8453, "https://mainnet.base.org", "https://basescan.org", poa=True),
    Chain("arbitrum", 42161, "https://arb1.arbitrum.io/rpc", "https://arbiscan.io", poa=True),
    Chain("polygon", 137, "https://polygon-rpc.com", "https://polygonscan.com", "POL", poa=True),
)

CHAINS: dict[str, Chain] = {chain.name: chain for chain in _REGISTRY}
_BY_ID: dict[int, Chain] = {chain.chain_id: chain for chain in _REGISTRY}


def get_chain(ref: str | int) -> Chain:
    """Resolve a chain by name or chain id.

    Raises
    ------
    KeyError
        If *ref* matches no registered chain.
    """
    if isinstance(ref, int) and not isinstance(ref, bool):
        chain = _BY_ID.get(ref)
    else:
        key = str(ref).strip().lower()
        chain = _BY_ID.get(int(key)) if key.isdigit() else CHAINS.get(key)
    if chain is None:
        raise KeyError(f"Unknown chain '{ref}'. Available: {list_chain_names()}")
    return chain


def list_chain_names() -> list[str]:
    return [chain.name for chain in _REGISTRY]
