"""Swap registry: the keyed store of in-flight swaps.

One composite record per commitment key. Deletion is true removal, so a
key becomes free again once its swap has ended; reusing a key is the asset
escrower's risk, since they chose it.

The registry is not thread-aware. The state machine serializes access per
key before it touches the registry.
"""

from __future__ import annotations

from typing import Dict, List

from hedgeswap.errors import AlreadySetUpError, NotFoundError
from hedgeswap.models.swap import SwapRecord


class SwapRegistry:
    """In-memory map of commitment key to SwapRecord.

    Usage:
        registry = SwapRegistry()
        registry.insert(record)
        record = registry.get(key)
        registry.update(record.with_premium(10))
        registry.remove(key)
    """

    def __init__(self) -> None:
        self._records: Dict[bytes, SwapRecord] = {}

    def insert(self, record: SwapRecord) -> None:
        """Add a new swap. Raises AlreadySetUpError if the key is taken."""
        key = record.commitment_key
        if key in self._records:
            raise AlreadySetUpError(
                f"Swap already set up for key {key.hex()}", key,
            )
        self._records[key] = record

    def get(self, key: bytes) -> SwapRecord:
        record = self._records.get(key)
        if record is None:
            raise NotFoundError(f"No swap for key {key.hex()}", key)
        return record

    def update(self, record: SwapRecord) -> None:
        """Replace the stored record for an existing key."""
        key = record.commitment_key
        if key not in self._records:
            raise NotFoundError(f"No swap for key {key.hex()}", key)
        self._records[key] = record

    def remove(self, key: bytes) -> SwapRecord:
        """Delete a swap. Only the terminal transition calls this, once."""
        record = self._records.pop(key, None)
        if record is None:
            raise NotFoundError(f"No swap for key {key.hex()}", key)
        return record

    def contains(self, key: bytes) -> bool:
        return key in self._records

    def records(self) -> List[SwapRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)
