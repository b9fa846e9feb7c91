"""Cryptographic primitives: hash commitments."""

from hedgeswap.crypto.commitment import HashCommitment

__all__ = ["HashCommitment"]
