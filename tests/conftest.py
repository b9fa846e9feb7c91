"""Shared fixtures: a manual clock, an in-memory ledger, and a wired engine."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from hedgeswap.engine.clock import ManualClock
from hedgeswap.engine.state_machine import SwapStateMachine
from hedgeswap.ledger.memory import InMemoryLedger
from hedgeswap.persistence.event_log import EventLog

ALICE = "alice"  # asset escrower
BOB = "bob"  # premium escrower
MALLORY = "mallory"
USDC = "USDC"
SECRET = b"correct horse battery staple"
KEY = hashlib.sha256(SECRET).digest()
START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
DELTA = timedelta(seconds=60)
ASSET = 100
PREMIUM = 10


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START - timedelta(seconds=10))


@pytest.fixture
def ledger() -> InMemoryLedger:
    ledger = InMemoryLedger()
    ledger.mint(USDC, ALICE, 1_000)
    ledger.approve(USDC, ALICE, 1_000)
    ledger.fund_native(BOB, 100)
    return ledger


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def machine(clock: ManualClock, ledger: InMemoryLedger, event_log: EventLog) -> SwapStateMachine:
    return SwapStateMachine(clock, ledger, event_log)
