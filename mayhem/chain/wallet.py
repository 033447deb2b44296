"""Wallet loading from base58-encoded secret keys."""

import base58
from solders.keypair import Keypair


def load_keypair(secret: str) -> Keypair:
    """Decode a base58 secret into a ``Keypair``.

    Accepts the 64-byte keypair export used by most wallets, or a bare
    32-byte seed.

    Raises:
        ValueError: the secret is not valid base58 or has the wrong length.
    """
    try:
        raw = base58.b58decode(secret.strip())
    except ValueError as exc:
        raise ValueError("Wallet secret is not valid base58") from exc

    if len(raw) == 64:
        return Keypair.from_bytes(raw)
    if len(raw) == 32:
        return Keypair.from_seed(raw)
    raise ValueError(
        f"Wallet secret must decode to 32 or 64 bytes, got {len(raw)}"
    )


def describe_wallet(keypair: Keypair) -> str:
    """Return the wallet's public address."""
    return str(keypair.pubkey())
