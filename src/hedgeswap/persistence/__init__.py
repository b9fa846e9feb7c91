"""Audit trail: event records, the sink contract, and the append-only log."""

from hedgeswap.persistence.event_log import EventKind, EventLog, EventRecord, EventSink

__all__ = ["EventKind", "EventLog", "EventRecord", "EventSink"]
