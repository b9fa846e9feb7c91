"""Append-only event log: the audit trail of every completed swap transition.

Each successful transition produces exactly one event. Events are
immutable once written and carry a SHA-256 hash over their canonical JSON
form, so independent parties can reconcile what the engine did without
trusting it. The log can be persisted to a JSONL file and loaded back;
loading verifies every hash and rejects duplicate IDs.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable


class EventKind(str, enum.Enum):
    """Classification of swap events."""
    SWAP_SET_UP = "swap_set_up"
    PREMIUM_ESCROWED = "premium_escrowed"
    ASSET_ESCROWED = "asset_escrowed"
    ASSET_REDEEMED = "asset_redeemed"
    PREMIUM_REFUNDED = "premium_refunded"
    ASSET_REFUNDED = "asset_refunded"
    PREMIUM_REDEEMED = "premium_redeemed"
    PAYOUT_WITHDRAWN = "payout_withdrawn"


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable swap event.

    The payload always carries commitment_key (hex), caller, amount,
    source, destination, current_premium and current_asset.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id, payload,
            ),
        )

    @property
    def commitment_key(self) -> Optional[str]:
        return self.payload.get("commitment_key")


@runtime_checkable
class EventSink(Protocol):
    """Receives one event per completed transition."""

    def append(self, event: EventRecord) -> None:
        ...


class EventLog:
    """Append-only event log with optional file persistence.

    Events can only be appended, never modified or deleted.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append an event to the log.

        Raises ValueError if event_id is a duplicate (replay protection).
        """
        if event.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")

        if self._storage_path:
            self._append_to_file(event)

        self._events.append(event)
        self._event_ids.add(event.event_id)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    def events_for(self, commitment_key: bytes) -> list[EventRecord]:
        """Return the full history of one swap, oldest first."""
        key_hex = commitment_key.hex()
        return [e for e in self._events if e.commitment_key == key_hex]

    def event_hashes(self, kind: Optional[EventKind] = None) -> list[str]:
        return [e.event_hash for e in self.events(kind)]

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, event: EventRecord) -> None:
        record = {
            "event_id": event.event_id,
            "event_kind": event.event_kind.value,
            "timestamp_utc": event.timestamp_utc,
            "actor_id": event.actor_id,
            "payload": event.payload,
            "event_hash": event.event_hash,
        }
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                event_id = data["event_id"]

                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_hash(
                    event_id,
                    data["event_kind"],
                    data["timestamp_utc"],
                    data["actor_id"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=event_id,
                    event_kind=EventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event_id)
