"""Engine configuration.

Swap parameters (amounts, parties, deadlines) are agreed per swap and
passed to setup. What lives here is engine-wide policy, loaded from
config/swap_params.json:

    hash_algorithm      hash function behind commitment keys
    redeemer_role       which party may reveal the secret and take the asset
    min_delta_seconds   smallest accepted time quantum
    max_delta_seconds   largest accepted time quantum
    native_denomination label used for the premium in events
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from hedgeswap.crypto.commitment import HASH_FUNCTIONS
from hedgeswap.models.swap import RedeemerRole


CONFIG_FILENAME = "swap_params.json"


@dataclass(frozen=True)
class SwapEngineConfig:
    hash_algorithm: str = "sha256"
    redeemer_role: RedeemerRole = RedeemerRole.PREMIUM_ESCROWER
    min_delta_seconds: int = 1
    max_delta_seconds: int = 30 * 24 * 60 * 60
    native_denomination: str = "native"

    def __post_init__(self) -> None:
        if self.hash_algorithm not in HASH_FUNCTIONS:
            raise ValueError(
                f"hash_algorithm must be one of {sorted(HASH_FUNCTIONS)}, "
                f"got {self.hash_algorithm!r}"
            )
        if self.min_delta_seconds <= 0:
            raise ValueError(
                f"min_delta_seconds must be positive, got {self.min_delta_seconds}"
            )
        if self.max_delta_seconds < self.min_delta_seconds:
            raise ValueError(
                f"max_delta_seconds ({self.max_delta_seconds}) must be >= "
                f"min_delta_seconds ({self.min_delta_seconds})"
            )
        if not self.native_denomination:
            raise ValueError("native_denomination must not be empty")

    @property
    def min_delta(self) -> timedelta:
        return timedelta(seconds=self.min_delta_seconds)

    @property
    def max_delta(self) -> timedelta:
        return timedelta(seconds=self.max_delta_seconds)

    @classmethod
    def default(cls) -> SwapEngineConfig:
        return cls()

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> SwapEngineConfig:
        return cls.from_file(config_dir / CONFIG_FILENAME)

    @classmethod
    def from_file(cls, path: Path) -> SwapEngineConfig:
        """Load from a JSON file. Missing keys keep their defaults."""
        params = json.loads(path.read_text(encoding="utf-8"))
        engine = params.get("engine", params)
        defaults = cls()
        try:
            role = RedeemerRole(engine.get("redeemer_role", defaults.redeemer_role.value))
        except ValueError:
            raise ValueError(
                f"redeemer_role must be one of {[r.value for r in RedeemerRole]}, "
                f"got {engine.get('redeemer_role')!r}"
            )
        return cls(
            hash_algorithm=engine.get("hash_algorithm", defaults.hash_algorithm),
            redeemer_role=role,
            min_delta_seconds=int(engine.get("min_delta_seconds", defaults.min_delta_seconds)),
            max_delta_seconds=int(engine.get("max_delta_seconds", defaults.max_delta_seconds)),
            native_denomination=engine.get(
                "native_denomination", defaults.native_denomination,
            ),
        )
