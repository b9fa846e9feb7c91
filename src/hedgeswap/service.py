"""Swap service: the facade a transport layer calls.

Wraps the state machine so every operation returns a typed ServiceResult
instead of raising. Rejections carry the error kind and message; successes
carry a JSON-friendly view of the swap. Commitment keys may be passed as
raw bytes or hex strings.

Only SwapError is converted. Anything else is a bug or an infrastructure
fault and propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

from hedgeswap.config import SwapEngineConfig
from hedgeswap.engine.clock import Clock, SystemClock
from hedgeswap.engine.state_machine import SwapStateMachine
from hedgeswap.errors import InvalidParametersError, SwapError
from hedgeswap.ledger.gateway import LedgerGateway
from hedgeswap.models.swap import SwapRecord, parse_commitment_key
from hedgeswap.persistence.event_log import EventLog, EventSink

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[str] = None


class SwapService:
    """Unified swap engine facade.

    Usage:
        service = SwapService.from_config_dir(config_dir, gateway=ledger)
        key = service.commitment_key_for(secret)
        service.setup(expected_asset=100, expected_premium=10, ...)
        service.escrow_premium(key, "bob", payment=10)
        service.escrow_asset(key, "alice")
        service.redeem_asset(key, secret, "bob")
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        clock: Optional[Clock] = None,
        event_log: Optional[EventSink] = None,
        config: Optional[SwapEngineConfig] = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._event_log = event_log if event_log is not None else EventLog()
        self._machine = SwapStateMachine(
            self._clock, gateway, self._event_log, config=config,
        )

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Path,
        gateway: LedgerGateway,
        clock: Optional[Clock] = None,
        event_log: Optional[EventSink] = None,
    ) -> SwapService:
        return cls(
            gateway,
            clock=clock,
            event_log=event_log,
            config=SwapEngineConfig.from_config_dir(config_dir),
        )

    @property
    def machine(self) -> SwapStateMachine:
        return self._machine

    @property
    def event_log(self) -> EventSink:
        return self._event_log

    def commitment_key_for(self, secret: bytes) -> bytes:
        """Digest a secret with the configured hash, for preparing a setup."""
        return self._machine.commitment.digest(secret)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def setup(
        self,
        expected_asset: int,
        expected_premium: int,
        asset_escrower: str,
        premium_escrower: str,
        asset_denomination: str,
        commitment_key: bytes | str,
        start_time: datetime,
        asset_escrowed_first: bool,
        delta: timedelta,
        caller: Optional[str] = None,
    ) -> ServiceResult:
        return self._run(
            "setup", commitment_key,
            lambda key: self._machine.setup(
                expected_asset, expected_premium, asset_escrower, premium_escrower,
                asset_denomination, key, start_time, asset_escrowed_first, delta,
                caller=caller,
            ),
        )

    def escrow_premium(self, commitment_key: bytes | str, caller: str, payment: int) -> ServiceResult:
        return self._run(
            "escrow_premium", commitment_key,
            lambda key: self._machine.escrow_premium(key, caller, payment),
        )

    def escrow_asset(self, commitment_key: bytes | str, caller: str) -> ServiceResult:
        return self._run(
            "escrow_asset", commitment_key,
            lambda key: self._machine.escrow_asset(key, caller),
        )

    def redeem_asset(
        self, commitment_key: bytes | str, revealed_secret: bytes, caller: str,
    ) -> ServiceResult:
        return self._run(
            "redeem_asset", commitment_key,
            lambda key: self._machine.redeem_asset(key, revealed_secret, caller),
            terminal=True,
        )

    def refund_premium(self, commitment_key: bytes | str, caller: Optional[str] = None) -> ServiceResult:
        return self._run(
            "refund_premium", commitment_key,
            lambda key: self._machine.refund_premium(key, caller),
            terminal=True,
        )

    def refund_asset(self, commitment_key: bytes | str, caller: Optional[str] = None) -> ServiceResult:
        return self._run(
            "refund_asset", commitment_key,
            lambda key: self._machine.refund_asset(key, caller),
            terminal=True,
        )

    def redeem_premium(self, commitment_key: bytes | str, caller: Optional[str] = None) -> ServiceResult:
        return self._run(
            "redeem_premium", commitment_key,
            lambda key: self._machine.redeem_premium(key, caller),
            terminal=True,
        )

    def withdraw_payout(self, account: str) -> ServiceResult:
        try:
            amount = self._machine.withdraw_payout(account, caller=account)
        except SwapError as e:
            log.warning("withdraw_payout rejected (%s): %s", e.kind.value, e)
            return ServiceResult(success=False, errors=[str(e)], error_kind=e.kind.value)
        return ServiceResult(success=True, data={"account": account, "amount": amount})

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_swap(self, commitment_key: bytes | str) -> ServiceResult:
        return self._run("get_swap", commitment_key, self._machine.get_swap)

    def status(self) -> dict[str, Any]:
        swaps = self._machine.list_swaps()
        by_state: dict[str, int] = {}
        for record in swaps:
            by_state[record.state.value] = by_state.get(record.state.value, 0) + 1
        payouts = self._machine.payouts
        return {
            "swaps": len(swaps),
            "swaps_by_state": by_state,
            "payouts_owed": {a: payouts.balance(a) for a in payouts.accounts()},
            "config": {
                "hash_algorithm": self._machine.config.hash_algorithm,
                "redeemer_role": self._machine.config.redeemer_role.value,
            },
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        commitment_key: bytes | str,
        action: Callable[[bytes], SwapRecord],
        terminal: bool = False,
    ) -> ServiceResult:
        try:
            try:
                key = parse_commitment_key(commitment_key)
            except ValueError as e:
                raise InvalidParametersError(str(e)) from e
            record = action(key)
        except SwapError as e:
            log.warning("%s rejected (%s): %s", operation, e.kind.value, e)
            return ServiceResult(success=False, errors=[str(e)], error_kind=e.kind.value)

        data = record.to_dict()
        if terminal:
            data["state"] = "closed"
            data["current_asset"] = 0
            data["current_premium"] = 0
        return ServiceResult(success=True, data=data)
