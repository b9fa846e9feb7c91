"""Hash commitment: checks a revealed secret against a commitment key.

The asset escrower picks a secret, publishes digest(secret) as the
commitment key at setup, and the redeemer later reveals the secret. Any
mismatch is a hard rejection.

Supported hash functions:
- sha256: hashlib, the default.
- keccak256: Ethereum's Keccak-256 via web3, for swaps whose other leg is
  locked by an EVM hash lock.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Callable, Dict

from hedgeswap.errors import InvalidSecretError


def _sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def _keccak256(data: bytes) -> bytes:
    from web3 import Web3

    return bytes(Web3.keccak(primitive=data))


HASH_FUNCTIONS: Dict[str, Callable[[bytes], bytes]] = {
    "sha256": _sha256,
    "keccak256": _keccak256,
}


class HashCommitment:
    """Verifies digest(secret) == commitment_key. Pure and deterministic.

    Usage:
        commitment = HashCommitment("sha256")
        key = commitment.digest(secret)
        commitment.require(secret, key)  # raises InvalidSecretError on mismatch
    """

    def __init__(self, algorithm: str = "sha256") -> None:
        if algorithm not in HASH_FUNCTIONS:
            raise ValueError(
                f"Unknown hash algorithm: {algorithm}. "
                f"Supported: {', '.join(sorted(HASH_FUNCTIONS))}"
            )
        self._algorithm = algorithm
        self._hash = HASH_FUNCTIONS[algorithm]

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def digest(self, secret: bytes) -> bytes:
        return self._hash(secret)

    def verify(self, secret: bytes, commitment_key: bytes) -> bool:
        return hmac.compare_digest(self._hash(secret), commitment_key)

    def require(self, secret: bytes, commitment_key: bytes) -> None:
        if not self.verify(secret, commitment_key):
            raise InvalidSecretError(
                f"Secret does not match commitment {commitment_key.hex()}",
                commitment_key,
            )
