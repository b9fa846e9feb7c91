"""Tests for SwapService: proves the facade reports outcomes instead of raising."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from conftest import ALICE, ASSET, BOB, DELTA, KEY, PREMIUM, SECRET, START, USDC
from hedgeswap.engine.clock import ManualClock
from hedgeswap.ledger.memory import InMemoryLedger
from hedgeswap.persistence.event_log import EventKind, EventLog
from hedgeswap.service import SwapService

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture
def service(clock: ManualClock, ledger: InMemoryLedger) -> SwapService:
    return SwapService.from_config_dir(CONFIG_DIR, gateway=ledger, clock=clock)


def _setup(service: SwapService, key: bytes | str = KEY):
    return service.setup(
        expected_asset=ASSET,
        expected_premium=PREMIUM,
        asset_escrower=ALICE,
        premium_escrower=BOB,
        asset_denomination=USDC,
        commitment_key=key,
        start_time=START,
        asset_escrowed_first=True,
        delta=DELTA,
    )


class TestHappyPath:
    def test_full_swap(self, service: SwapService, ledger: InMemoryLedger) -> None:
        assert service.commitment_key_for(SECRET) == KEY

        result = _setup(service)
        assert result.success
        assert result.data["state"] == "created"
        assert result.data["commitment_key"] == KEY.hex()

        ledger.receive_native(BOB, PREMIUM)
        result = service.escrow_premium(KEY, BOB, PREMIUM)
        assert result.data["state"] == "premium_escrowed"

        result = service.escrow_asset(KEY, ALICE)
        assert result.data["current_asset"] == ASSET

        result = service.redeem_asset(KEY, SECRET, BOB)
        assert result.success
        assert result.data["state"] == "closed"
        assert result.data["current_asset"] == 0
        assert result.data["current_premium"] == 0
        assert ledger.balance(USDC, BOB) == ASSET

        assert not service.get_swap(KEY).success
        kinds = [e.event_kind for e in service.event_log.events()]
        assert kinds[-1] == EventKind.ASSET_REDEEMED

    def test_hex_keys_accepted(self, service: SwapService) -> None:
        assert _setup(service, key="0x" + KEY.hex()).success
        result = service.get_swap(KEY.hex())
        assert result.success
        assert result.data["expected_premium"] == PREMIUM


class TestRejections:
    def test_error_kind_reported(self, service: SwapService) -> None:
        result = service.escrow_asset(KEY, ALICE)
        assert not result.success
        assert result.error_kind == "not_found"
        assert result.errors

    def test_not_set_up_kind(self, service: SwapService) -> None:
        result = service.escrow_premium(KEY, BOB, PREMIUM)
        assert result.error_kind == "not_set_up"

    def test_malformed_key(self, service: SwapService) -> None:
        result = service.get_swap("not-hex")
        assert result.error_kind == "invalid_parameters"

    def test_delta_below_configured_minimum(self, service: SwapService) -> None:
        result = service.setup(
            ASSET, PREMIUM, ALICE, BOB, USDC, KEY, START, True, timedelta(seconds=30),
        )
        assert result.error_kind == "invalid_parameters"

    def test_delta_of_wrong_type(self, service: SwapService) -> None:
        result = service.setup(ASSET, PREMIUM, ALICE, BOB, USDC, KEY, START, True, 60)
        assert result.error_kind == "invalid_parameters"
        assert "timedelta" in result.errors[0]

    def test_naive_start_time_stays_usable(
        self, service: SwapService, ledger: InMemoryLedger,
    ) -> None:
        result = service.setup(
            ASSET, PREMIUM, ALICE, BOB, USDC, KEY, START.replace(tzinfo=None), True, DELTA,
        )
        assert result.success
        ledger.receive_native(BOB, PREMIUM)
        assert service.escrow_premium(KEY, BOB, PREMIUM).success

    def test_invalid_secret(self, service: SwapService, ledger: InMemoryLedger) -> None:
        _setup(service)
        ledger.receive_native(BOB, PREMIUM)
        service.escrow_premium(KEY, BOB, PREMIUM)
        service.escrow_asset(KEY, ALICE)
        result = service.redeem_asset(KEY, b"guess", BOB)
        assert result.error_kind == "invalid_secret"

    def test_timeout_not_reached(self, service: SwapService, ledger: InMemoryLedger) -> None:
        _setup(service)
        ledger.receive_native(BOB, PREMIUM)
        service.escrow_premium(KEY, BOB, PREMIUM)
        service.escrow_asset(KEY, ALICE)
        assert service.redeem_premium(KEY).error_kind == "timeout_not_reached"
        assert service.refund_asset(KEY).error_kind == "deadline_not_reached"
        assert service.refund_premium(KEY).error_kind == "already_escrowed"


class TestPayoutsAndStatus:
    def test_withdraw_nothing_owed(self, service: SwapService) -> None:
        result = service.withdraw_payout(BOB)
        assert not result.success
        assert result.error_kind == "not_found"

    def test_deferred_premium_withdrawn(
        self, service: SwapService, ledger: InMemoryLedger,
    ) -> None:
        _setup(service)
        ledger.receive_native(BOB, PREMIUM)
        service.escrow_premium(KEY, BOB, PREMIUM)
        service.escrow_asset(KEY, ALICE)
        ledger.fail_native_transfers_to(BOB)
        assert service.redeem_asset(KEY, SECRET, BOB).success
        assert service.status()["payouts_owed"] == {BOB: PREMIUM}

        ledger.fail_native_transfers_to(BOB, failing=False)
        result = service.withdraw_payout(BOB)
        assert result.success
        assert result.data == {"account": BOB, "amount": PREMIUM}

    def test_status(self, service: SwapService, ledger: InMemoryLedger) -> None:
        _setup(service)
        status = service.status()
        assert status["swaps"] == 1
        assert status["swaps_by_state"] == {"created": 1}
        assert status["config"]["redeemer_role"] == "premium_escrower"

    def test_shared_event_log(self, clock: ManualClock, ledger: InMemoryLedger) -> None:
        log = EventLog()
        service = SwapService(ledger, clock=clock, event_log=log)
        _setup(service)
        assert log.count == 1
