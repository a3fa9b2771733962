"""Wallet side of Wallet Pilot: chains, key material and the ledger adapter.

The agent never sees private keys.  Keys are decrypted locally into a
signer that the execution coordinator hands to the ledger for signing.
"""
