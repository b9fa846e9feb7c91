"""Swap models: agreement, escrow positions, and the composite swap record.

Amounts are unsigned integers in the smallest unit of their denomination.
No floats, no Decimal: ledgers move whole base units.

Invariants enforced by these models and the engine that mutates them:
- current is either 0 or exactly expected, for both positions
- asset is escrowed only after premium
- premium_deadline <= asset_deadline <= timeout
- a stored record always names its asset escrower

Records are immutable. A transition builds a replacement with
dataclasses.replace and commits it through the registry, so a rejected
or aborted transition never leaves a half-written record behind.
"""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any


COMMITMENT_KEY_BYTES = 32


class SwapState(str, enum.Enum):
    """Live state of a swap, derived from its current amounts.

    State machine:
        CREATED → PREMIUM_ESCROWED → ASSET_ESCROWED
    Terminal outcomes are not stored: the record is removed instead.
    """
    CREATED = "created"
    PREMIUM_ESCROWED = "premium_escrowed"
    ASSET_ESCROWED = "asset_escrowed"


class SwapOutcome(str, enum.Enum):
    """How a swap ended. Carried on terminal events only."""
    REDEEMED = "redeemed"
    PREMIUM_REFUNDED = "premium_refunded"
    ASSET_REFUNDED = "asset_refunded"
    PREMIUM_REDEEMED = "premium_redeemed"


class RedeemerRole(str, enum.Enum):
    """Which party may reveal the secret and take the escrowed asset."""
    PREMIUM_ESCROWER = "premium_escrower"
    ASSET_ESCROWER = "asset_escrower"


@dataclass(frozen=True)
class SwapAgreement:
    """Who is swapping what. Fixed at setup."""
    asset_escrower: str
    premium_escrower: str
    commitment_key: bytes
    asset_denomination: str


@dataclass(frozen=True)
class AssetPosition:
    expected: int
    deadline: datetime
    timeout: datetime
    current: int = 0

    @property
    def escrowed(self) -> bool:
        return self.current > 0


@dataclass(frozen=True)
class PremiumPosition:
    """Premium side of the swap.

    No timeout of its own: the premium is at risk until the swap timeout
    held on the asset position.
    """
    expected: int
    deadline: datetime
    current: int = 0

    @property
    def escrowed(self) -> bool:
        return self.current > 0


@dataclass(frozen=True)
class SwapRecord:
    """The canonical state of one in-flight swap."""
    agreement: SwapAgreement
    asset: AssetPosition
    premium: PremiumPosition
    created_utc: datetime

    @property
    def commitment_key(self) -> bytes:
        return self.agreement.commitment_key

    @property
    def timeout(self) -> datetime:
        return self.asset.timeout

    @property
    def state(self) -> SwapState:
        if self.asset.escrowed:
            return SwapState.ASSET_ESCROWED
        if self.premium.escrowed:
            return SwapState.PREMIUM_ESCROWED
        return SwapState.CREATED

    def with_premium(self, current: int) -> SwapRecord:
        return dataclasses.replace(
            self, premium=dataclasses.replace(self.premium, current=current),
        )

    def with_asset(self, current: int) -> SwapRecord:
        return dataclasses.replace(
            self, asset=dataclasses.replace(self.asset, current=current),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view used by the service layer."""
        return {
            "commitment_key": self.commitment_key.hex(),
            "state": self.state.value,
            "asset_escrower": self.agreement.asset_escrower,
            "premium_escrower": self.agreement.premium_escrower,
            "asset_denomination": self.agreement.asset_denomination,
            "expected_asset": self.asset.expected,
            "current_asset": self.asset.current,
            "expected_premium": self.premium.expected,
            "current_premium": self.premium.current,
            "premium_deadline": self.premium.deadline.isoformat(),
            "asset_deadline": self.asset.deadline.isoformat(),
            "timeout": self.asset.timeout.isoformat(),
            "created_utc": self.created_utc.isoformat(),
        }


def parse_commitment_key(value: bytes | str) -> bytes:
    """Accept a commitment key as raw bytes or hex (with or without 0x).

    Raises ValueError if the key is not exactly COMMITMENT_KEY_BYTES long.
    """
    if isinstance(value, str):
        text = value[2:] if value.startswith("0x") else value
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Commitment key is not valid hex: {text!r}")
    if len(value) != COMMITMENT_KEY_BYTES:
        raise ValueError(
            f"Commitment key must be {COMMITMENT_KEY_BYTES} bytes, got {len(value)}"
        )
    return bytes(value)
