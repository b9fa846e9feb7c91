"""Core data models for hedgeswap."""

from hedgeswap.models.swap import (
    AssetPosition,
    PremiumPosition,
    RedeemerRole,
    SwapAgreement,
    SwapOutcome,
    SwapRecord,
    SwapState,
    parse_commitment_key,
)

__all__ = [
    "AssetPosition",
    "PremiumPosition",
    "RedeemerRole",
    "SwapAgreement",
    "SwapOutcome",
    "SwapRecord",
    "SwapState",
    "parse_commitment_key",
]
