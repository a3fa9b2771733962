"""Key material: encrypted keystore files and signer loading.

Private keys never leave this module except as an in-memory
:class:`~eth_account.signers.local.LocalAccount` used for local signing.
Every way of obtaining a signer (raw key material, a fresh key, or an
unlocked keystore) goes through :func:`load_signer`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

KEYSTORE_FILENAME = "keystore.json"

KeySource = Union[str, bytes, bytearray, list, dict]


def keystore_path(wallet_dir: Path) -> Path:
    return wallet_dir / KEYSTORE_FILENAME


def _read_keystore(wallet_dir: Path) -> Optional[dict[str, Any]]:
    path = keystore_path(wallet_dir)
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


def load_signer(source: KeySource) -> LocalAccount:
    """Build a local signer from private key material.

    Accepts a hex string (with or without ``0x``), a JSON array string of
    key bytes, raw bytes, a list of ints, or ``{"secretKey": ...}``.
    """
    if isinstance(source, dict):
        if "secretKey" not in source:
            raise ValueError("Key source mapping must contain 'secretKey'")
        return load_signer(source["secretKey"])

    if isinstance(source, str):
        text = source.strip()
        if text.startswith("[") and text.endswith("]"):
            parsed: Any = json.loads(text)
            if not isinstance(parsed, list):
                raise ValueError("Invalid JSON secret key: expected array")
            return load_signer(parsed)
        return Account.from_key(text)

    if isinstance(source, list):
        return Account.from_key(bytes(source))

    if isinstance(source, (bytes, bytearray)):
        return Account.from_key(bytes(source))

    raise TypeError(f"Unsupported key source type: {type(source).__name__}")


def create_wallet(wallet_dir: Path, password: str, key: Optional[KeySource] = None) -> str:
    """Encrypt a signer into a new keystore and return its address.

    A fresh key is generated unless *key* (any format :func:`load_signer`
    accepts) is given to import an existing one.

    Raises
    ------
    FileExistsError
        If *wallet_dir* already holds a keystore.
    """
    path = keystore_path(wallet_dir)
    if path.exists():
        raise FileExistsError(f"Wallet already exists at {path}; remove it before creating another.")

    signer = load_signer(key) if key is not None else Account.create()
    wallet_dir.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(signer.encrypt(password), indent=2), encoding="utf-8")
    return signer.address


def load_address(wallet_dir: Path) -> str | None:
    """Checksummed wallet address, read without decrypting."""
    data = _read_keystore(wallet_dir)
    if data is None or not data.get("address"):
        return None
    raw = data["address"]
    return Web3.to_checksum_address(raw if raw.startswith("0x") else "0x" + raw)


def unlock_signer(wallet_dir: Path, password: str) -> LocalAccount:
    """Decrypt the keystore in *wallet_dir* into a signer.

    Raises ``FileNotFoundError`` without a keystore and ``ValueError`` on
    a wrong password.
    """
    data = _read_keystore(wallet_dir)
    if data is None:
        raise FileNotFoundError(f"No keystore found at {keystore_path(wallet_dir)}")
    try:
        secret = Account.decrypt(data, password)
    except ValueError as exc:
        raise ValueError(f"Failed to decrypt keystore: {exc}") from exc
    return load_signer(bytes(secret))
