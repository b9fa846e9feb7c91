"""Swap state machine: the guarded transitions of a premium-backed hash-lock swap.

Lifecycle of one swap, keyed by its commitment key:

    setup            → CREATED
    escrow_premium   CREATED → PREMIUM_ESCROWED
    escrow_asset     PREMIUM_ESCROWED → ASSET_ESCROWED
    refund_premium   PREMIUM_ESCROWED → (removed)
    redeem_asset     ASSET_ESCROWED → (removed)
    refund_asset     ASSET_ESCROWED → (removed)
    redeem_premium   ASSET_ESCROWED → (removed)

Every transition is fail-closed. Preconditions are explicit _require_*
checks composed at the top of each operation; the first failure raises a
typed SwapError and nothing is mutated. Ledger movements happen before the
record change is committed, and a movement whose actual amount differs
from the requested amount aborts the operation.

Deadline boundaries: the deadline instant belongs to the earlier action.
now <= deadline permits escrow and redemption; now > deadline permits
refunds and forfeiture.

Terminal transitions settle everything still held for the swap. When both
an asset leg and a premium leg move, the asset leg goes first; once it has
moved the transition is committed, and a premium push that fails after
that point is credited to the recipient's payout book entry.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, Optional, Type

from hedgeswap.config import SwapEngineConfig
from hedgeswap.crypto.commitment import HashCommitment
from hedgeswap.engine.clock import Clock, as_utc
from hedgeswap.engine.deadlines import compute_deadlines
from hedgeswap.engine.payouts import PayoutBook
from hedgeswap.engine.registry import SwapRegistry
from hedgeswap.errors import (
    AlreadyEscrowedError,
    DeadlineExceededError,
    DeadlineNotReachedError,
    GatewayFailureError,
    InsufficientPaymentError,
    InvalidParametersError,
    NotEscrowedError,
    NotFoundError,
    NotSetUpError,
    PremiumNotEscrowedError,
    TimeoutExceededError,
    TimeoutNotReachedError,
    TransferMismatchError,
    WrongCallerError,
)
from hedgeswap.ledger.gateway import LedgerError, LedgerGateway
from hedgeswap.models.swap import (
    COMMITMENT_KEY_BYTES,
    AssetPosition,
    PremiumPosition,
    RedeemerRole,
    SwapAgreement,
    SwapOutcome,
    SwapRecord,
    SwapState,
)
from hedgeswap.persistence.event_log import EventKind, EventLog, EventRecord, EventSink

log = logging.getLogger(__name__)

ANONYMOUS_CALLER = "anonymous"
CUSTODY = "custody"


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class _KeyLocks:
    """One mutex per commitment key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[bytes, _LockEntry] = {}

    @contextmanager
    def hold(self, key: bytes) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, _LockEntry())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]


class SwapStateMachine:
    """Owns the swap registry and applies transitions to it.

    Usage:
        machine = SwapStateMachine(clock, gateway, event_log)
        machine.setup(100, 10, "alice", "bob", "USDC", key, start, True, delta)
        machine.escrow_premium(key, "bob", payment=10)
        machine.escrow_asset(key, "alice")
        machine.redeem_asset(key, secret, "bob")
    """

    def __init__(
        self,
        clock: Clock,
        gateway: LedgerGateway,
        sink: EventSink,
        config: Optional[SwapEngineConfig] = None,
        registry: Optional[SwapRegistry] = None,
        payouts: Optional[PayoutBook] = None,
    ) -> None:
        self._clock = clock
        self._gateway = gateway
        self._sink = sink
        self._config = config or SwapEngineConfig.default()
        self._registry = registry if registry is not None else SwapRegistry()
        self._payouts = payouts if payouts is not None else PayoutBook()
        self._commitment = HashCommitment(self._config.hash_algorithm)
        self._locks = _KeyLocks()
        self._payout_lock = threading.Lock()
        self._counter_lock = threading.Lock()
        # Continue numbering from a persisted log to avoid ID collision on restart
        self._event_counter = sink.count if isinstance(sink, EventLog) else 0

    @property
    def config(self) -> SwapEngineConfig:
        return self._config

    @property
    def commitment(self) -> HashCommitment:
        return self._commitment

    @property
    def payouts(self) -> PayoutBook:
        return self._payouts

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
        commitment_key: bytes,
        start_time: datetime,
        asset_escrowed_first: bool,
        delta: timedelta,
        caller: Optional[str] = None,
    ) -> SwapRecord:
        """Register a new swap with zeroed positions."""
        self._require_setup_params(
            expected_asset, expected_premium, asset_escrower, premium_escrower,
            asset_denomination, commitment_key, start_time, delta,
        )
        start_time = as_utc(start_time)
        if caller is not None and caller != asset_escrower:
            raise WrongCallerError(
                f"Only the asset escrower {asset_escrower} can set up the swap, "
                f"not {caller}",
                commitment_key,
            )

        with self._locks.hold(commitment_key):
            now = self._clock.now()
            deadlines = compute_deadlines(start_time, delta, asset_escrowed_first)
            record = SwapRecord(
                agreement=SwapAgreement(
                    asset_escrower=asset_escrower,
                    premium_escrower=premium_escrower,
                    commitment_key=commitment_key,
                    asset_denomination=asset_denomination,
                ),
                asset=AssetPosition(
                    expected=expected_asset,
                    deadline=deadlines.asset_deadline,
                    timeout=deadlines.timeout,
                ),
                premium=PremiumPosition(
                    expected=expected_premium,
                    deadline=deadlines.premium_deadline,
                ),
                created_utc=now,
            )
            self._registry.insert(record)
            self._emit(
                EventKind.SWAP_SET_UP, now,
                self._payload(
                    record, caller or asset_escrower, 0, asset_escrower, CUSTODY,
                    expected_asset=expected_asset,
                    expected_premium=expected_premium,
                    asset_denomination=asset_denomination,
                    premium_escrower=premium_escrower,
                    asset_escrowed_first=asset_escrowed_first,
                    premium_deadline=deadlines.premium_deadline.isoformat(),
                    asset_deadline=deadlines.asset_deadline.isoformat(),
                    timeout=deadlines.timeout.isoformat(),
                ),
            )
            log.info("Swap %s set up", commitment_key.hex())
            return record

    def escrow_premium(self, commitment_key: bytes, caller: str, payment: int) -> SwapRecord:
        """Accept the premium. payment is native value attached to the call.

        The engine does not pull the premium itself: the caller of this
        method must already have credited payment to the gateway's custody
        account (see LedgerGateway). Custody keeps exactly the agreed
        premium; any excess is returned to the payer before the record
        changes.
        """
        with self._locks.hold(commitment_key):
            record = self._load(commitment_key, missing=NotSetUpError)
            if record.premium.escrowed:
                raise AlreadyEscrowedError(
                    f"Premium already escrowed for {commitment_key.hex()}",
                    commitment_key,
                )
            self._require_caller(record, caller, record.agreement.premium_escrower)
            if not _is_amount(payment) or payment < record.premium.expected:
                raise InsufficientPaymentError(
                    f"Payment {payment} is below the agreed premium "
                    f"{record.premium.expected}",
                    commitment_key,
                )
            now = self._clock.now()
            self._require_not_after(
                now, record.premium.deadline, "premium deadline", DeadlineExceededError,
                commitment_key,
            )

            excess = payment - record.premium.expected
            if excess:
                self._push_native(commitment_key, caller, excess)

            updated = record.with_premium(record.premium.expected)
            self._registry.update(updated)
            self._emit(
                EventKind.PREMIUM_ESCROWED, now,
                self._payload(
                    updated, caller, updated.premium.current, caller, CUSTODY,
                    payment=payment,
                    excess_returned=excess,
                    denomination=self._config.native_denomination,
                ),
            )
            log.info("Premium %d escrowed for %s", updated.premium.current, commitment_key.hex())
            return updated

    def escrow_asset(self, commitment_key: bytes, caller: str) -> SwapRecord:
        """Pull exactly the agreed asset amount from the asset escrower."""
        with self._locks.hold(commitment_key):
            record = self._load(commitment_key)
            if record.asset.escrowed:
                raise AlreadyEscrowedError(
                    f"Asset already escrowed for {commitment_key.hex()}",
                    commitment_key,
                )
            if not record.premium.escrowed:
                raise PremiumNotEscrowedError(
                    f"Premium must be escrowed before the asset for "
                    f"{commitment_key.hex()}",
                    commitment_key,
                )
            self._require_caller(record, caller, record.agreement.asset_escrower)
            now = self._clock.now()
            self._require_not_after(
                now, record.asset.deadline, "asset deadline", DeadlineExceededError,
                commitment_key,
            )

            self._pull_asset(record, caller)

            updated = record.with_asset(record.asset.expected)
            self._registry.update(updated)
            self._emit(
                EventKind.ASSET_ESCROWED, now,
                self._payload(
                    updated, caller, updated.asset.current, caller, CUSTODY,
                    denomination=record.agreement.asset_denomination,
                ),
            )
            log.info("Asset %d escrowed for %s", updated.asset.current, commitment_key.hex())
            return updated

    def redeem_asset(self, commitment_key: bytes, revealed_secret: bytes, caller: str) -> SwapRecord:
        """Reveal the secret and take the asset. Returns the removed record.

        The premium goes back to the premium escrower: the swap performed.
        """
        with self._locks.hold(commitment_key):
            record = self._load(commitment_key)
            self._commitment.require(revealed_secret, commitment_key)
            self._require_asset_escrowed(record)
            redeemer = self.authorized_redeemer(record)
            self._require_caller(record, caller, redeemer)
            now = self._clock.now()
            self._require_not_after(
                now, record.timeout, "timeout", TimeoutExceededError, commitment_key,
            )

            self._push_asset(record, redeemer)
            deferred = self._settle_premium(record, record.agreement.premium_escrower)

            self._registry.remove(commitment_key)
            self._emit(
                EventKind.ASSET_REDEEMED, now,
                self._terminal_payload(
                    record, caller, record.asset.current, redeemer,
                    SwapOutcome.REDEEMED,
                    premium_destination=record.agreement.premium_escrower,
                    premium_deferred=deferred,
                    secret=revealed_secret.hex(),
                ),
            )
            log.info("Swap %s redeemed by %s", commitment_key.hex(), redeemer)
            return record

    def refund_premium(self, commitment_key: bytes, caller: Optional[str] = None) -> SwapRecord:
        """Return the premium when the asset never arrived."""
        with self._locks.hold(commitment_key):
            record = self._load(commitment_key)
            if not record.premium.escrowed:
                raise NotEscrowedError(
                    f"No premium escrowed for {commitment_key.hex()}", commitment_key,
                )
            if record.asset.escrowed:
                raise AlreadyEscrowedError(
                    f"Asset is escrowed for {commitment_key.hex()}; the premium "
                    f"stays at stake until redemption or timeout",
                    commitment_key,
                )
            now = self._clock.now()
            self._require_after(
                now, record.premium.deadline, "premium deadline",
                DeadlineNotReachedError, commitment_key,
            )

            premium_escrower = record.agreement.premium_escrower
            self._push_native(commitment_key, premium_escrower, record.premium.current)

            self._registry.remove(commitment_key)
            self._emit(
                EventKind.PREMIUM_REFUNDED, now,
                self._terminal_payload(
                    record, caller, record.premium.current, premium_escrower,
                    SwapOutcome.PREMIUM_REFUNDED,
                ),
            )
            log.info("Premium refunded for %s", commitment_key.hex())
            return record

    def refund_asset(self, commitment_key: bytes, caller: Optional[str] = None) -> SwapRecord:
        """Return the asset after its deadline.

        The premium is returned to its escrower while the swap has not timed
        out, and forfeited to the asset escrower once it has.
        """
        with self._locks.hold(commitment_key):
            record = self._load(commitment_key)
            self._require_asset_escrowed(record)
            now = self._clock.now()
            self._require_after(
                now, record.asset.deadline, "asset deadline",
                DeadlineNotReachedError, commitment_key,
            )

            asset_escrower = record.agreement.asset_escrower
            self._push_asset(record, asset_escrower)
            premium_destination = (
                asset_escrower if now > record.timeout
                else record.agreement.premium_escrower
            )
            deferred = self._settle_premium(record, premium_destination)

            self._registry.remove(commitment_key)
            self._emit(
                EventKind.ASSET_REFUNDED, now,
                self._terminal_payload(
                    record, caller, record.asset.current, asset_escrower,
                    SwapOutcome.ASSET_REFUNDED,
                    premium_destination=premium_destination,
                    premium_deferred=deferred,
                ),
            )
            log.info("Asset refunded for %s", commitment_key.hex())
            return record

    def redeem_premium(self, commitment_key: bytes, caller: Optional[str] = None) -> SwapRecord:
        """Forfeit the premium to the asset escrower after the timeout.

        The escrowed asset is returned to the asset escrower in the same step.
        """
        with self._locks.hold(commitment_key):
            record = self._load(commitment_key)
            if not record.premium.escrowed:
                raise NotEscrowedError(
                    f"No premium escrowed for {commitment_key.hex()}", commitment_key,
                )
            now = self._clock.now()
            self._require_after(
                now, record.timeout, "timeout", TimeoutNotReachedError, commitment_key,
            )
            if record.premium.current != record.premium.expected:
                raise InsufficientPaymentError(
                    f"Premium {record.premium.current} is not the agreed "
                    f"{record.premium.expected}",
                    commitment_key,
                )
            self._require_asset_escrowed(record)

            asset_escrower = record.agreement.asset_escrower
            self._push_asset(record, asset_escrower)
            deferred = self._settle_premium(record, asset_escrower)

            self._registry.remove(commitment_key)
            self._emit(
                EventKind.PREMIUM_REDEEMED, now,
                self._terminal_payload(
                    record, caller, record.premium.current, asset_escrower,
                    SwapOutcome.PREMIUM_REDEEMED,
                    asset_returned=record.asset.current,
                    premium_deferred=deferred,
                ),
            )
            log.info("Premium forfeited to %s for %s", asset_escrower, commitment_key.hex())
            return record

    def withdraw_payout(self, account: str, caller: Optional[str] = None) -> int:
        """Push a deferred premium credit to its owner. Returns the amount paid."""
        with self._payout_lock:
            amount = self._payouts.balance(account)
            if amount == 0:
                raise NotFoundError(f"No payout owed to {account}")
            try:
                delivered = self._gateway.native_transfer(account, amount)
            except (LedgerError, OSError) as e:
                raise GatewayFailureError(f"Payout to {account} failed: {e}") from e
            if not delivered:
                raise GatewayFailureError(f"Payout of {amount} to {account} was rejected")
            self._payouts.debit(account, amount)
            self._emit(
                EventKind.PAYOUT_WITHDRAWN, self._clock.now(),
                {
                    "commitment_key": None,
                    "caller": caller or account,
                    "amount": amount,
                    "source": CUSTODY,
                    "destination": account,
                    "current_premium": 0,
                    "current_asset": 0,
                },
            )
            log.info("Payout %d withdrawn by %s", amount, account)
            return amount

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_swap(self, commitment_key: bytes) -> SwapRecord:
        return self._registry.get(commitment_key)

    def swap_state(self, commitment_key: bytes) -> SwapState:
        return self._registry.get(commitment_key).state

    def list_swaps(self) -> list[SwapRecord]:
        return self._registry.records()

    def authorized_redeemer(self, record: SwapRecord) -> str:
        if self._config.redeemer_role == RedeemerRole.ASSET_ESCROWER:
            return record.agreement.asset_escrower
        return record.agreement.premium_escrower

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _load(
        self,
        commitment_key: bytes,
        missing: Type[NotFoundError] = NotFoundError,
    ) -> SwapRecord:
        if not self._registry.contains(commitment_key):
            raise missing(f"No swap for key {commitment_key.hex()}", commitment_key)
        return self._registry.get(commitment_key)

    def _require_setup_params(
        self,
        expected_asset: int,
        expected_premium: int,
        asset_escrower: str,
        premium_escrower: str,
        asset_denomination: str,
        commitment_key: bytes,
        start_time: datetime,
        delta: timedelta,
    ) -> None:
        errors: list[str] = []
        if not _is_amount(expected_asset) or expected_asset == 0:
            errors.append(f"expected_asset must be a positive integer, got {expected_asset!r}")
        if not _is_amount(expected_premium) or expected_premium == 0:
            errors.append(f"expected_premium must be a positive integer, got {expected_premium!r}")
        if not asset_escrower or not premium_escrower:
            errors.append("both escrower identities are required")
        elif asset_escrower == premium_escrower:
            errors.append("asset escrower and premium escrower must differ")
        if not asset_denomination:
            errors.append("asset_denomination is required")
        if not isinstance(commitment_key, bytes) or len(commitment_key) != COMMITMENT_KEY_BYTES:
            errors.append(f"commitment_key must be {COMMITMENT_KEY_BYTES} bytes")
        if not isinstance(start_time, datetime):
            errors.append(f"start_time must be a datetime, got {start_time!r}")
        if not isinstance(delta, timedelta):
            errors.append(f"delta must be a timedelta, got {delta!r}")
        elif not self._config.min_delta <= delta <= self._config.max_delta:
            errors.append(
                f"delta {delta} outside [{self._config.min_delta}, {self._config.max_delta}]"
            )
        if errors:
            key = commitment_key if isinstance(commitment_key, bytes) else None
            raise InvalidParametersError("; ".join(errors), key)

    @staticmethod
    def _require_caller(record: SwapRecord, caller: str, expected: str) -> None:
        if caller != expected:
            raise WrongCallerError(
                f"Caller {caller} is not {expected} for {record.commitment_key.hex()}",
                record.commitment_key,
            )

    @staticmethod
    def _require_asset_escrowed(record: SwapRecord) -> None:
        if not record.asset.escrowed:
            raise NotEscrowedError(
                f"No asset escrowed for {record.commitment_key.hex()}",
                record.commitment_key,
            )

    @staticmethod
    def _require_not_after(
        now: datetime,
        limit: datetime,
        label: str,
        error: type,
        commitment_key: bytes,
    ) -> None:
        if now > limit:
            raise error(
                f"{label} {limit.isoformat()} has passed (now {now.isoformat()})",
                commitment_key,
            )

    @staticmethod
    def _require_after(
        now: datetime,
        limit: datetime,
        label: str,
        error: type,
        commitment_key: bytes,
    ) -> None:
        if now <= limit:
            raise error(
                f"{label} {limit.isoformat()} has not passed (now {now.isoformat()})",
                commitment_key,
            )

    # ------------------------------------------------------------------
    # Ledger movements
    # ------------------------------------------------------------------

    def _pull_asset(self, record: SwapRecord, source: str) -> None:
        """transfer_in with an exact-amount check.

        On a short transfer whatever did arrive is handed back to the source
        before the mismatch is raised, so custody never keeps a partial
        deposit.
        """
        key = record.commitment_key
        denomination = record.agreement.asset_denomination
        requested = record.asset.expected
        try:
            actual = self._gateway.transfer_in(denomination, source, requested)
        except (LedgerError, OSError) as e:
            raise GatewayFailureError(f"Asset escrow failed: {e}", key) from e
        if actual == requested:
            return
        if actual > 0:
            try:
                self._gateway.transfer_out(denomination, source, actual)
            except (LedgerError, OSError) as e:
                raise GatewayFailureError(
                    f"Asset escrow moved {actual} instead of {requested} and the "
                    f"partial deposit could not be returned: {e}",
                    key,
                ) from e
        raise TransferMismatchError(
            f"Asset escrow moved {actual} {denomination}, expected {requested}",
            key, requested=requested, actual=actual,
        )

    def _push_asset(self, record: SwapRecord, destination: str) -> None:
        key = record.commitment_key
        denomination = record.agreement.asset_denomination
        requested = record.asset.current
        try:
            actual = self._gateway.transfer_out(denomination, destination, requested)
        except (LedgerError, OSError) as e:
            raise GatewayFailureError(f"Asset payout failed: {e}", key) from e
        if actual != requested:
            log.error(
                "Asset payout for %s delivered %d of %d; ledger reconciliation required",
                key.hex(), actual, requested,
            )
            raise TransferMismatchError(
                f"Asset payout delivered {actual} {denomination}, expected {requested}",
                key, requested=requested, actual=actual,
            )

    def _push_native(self, commitment_key: bytes, destination: str, amount: int) -> None:
        try:
            delivered = self._gateway.native_transfer(destination, amount)
        except (LedgerError, OSError) as e:
            raise GatewayFailureError(
                f"Native transfer to {destination} failed: {e}", commitment_key,
            ) from e
        if not delivered:
            raise GatewayFailureError(
                f"Native transfer of {amount} to {destination} was rejected",
                commitment_key,
            )

    def _settle_premium(self, record: SwapRecord, destination: str) -> bool:
        """Push the premium after the asset leg has moved. True if deferred."""
        amount = record.premium.current
        if amount == 0:
            return False
        try:
            self._push_native(record.commitment_key, destination, amount)
        except GatewayFailureError as e:
            with self._payout_lock:
                self._payouts.credit(destination, amount)
            log.error(
                "Premium %d for %s credited to %s after failed push: %s",
                amount, record.commitment_key.hex(), destination, e,
            )
            return True
        return False

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    @staticmethod
    def _payload(
        record: SwapRecord,
        caller: Optional[str],
        amount: int,
        source: str,
        destination: str,
        **extra: Any,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "commitment_key": record.commitment_key.hex(),
            "caller": caller or ANONYMOUS_CALLER,
            "amount": amount,
            "source": source,
            "destination": destination,
            "current_premium": record.premium.current,
            "current_asset": record.asset.current,
        }
        payload.update(extra)
        return payload

    def _terminal_payload(
        self,
        record: SwapRecord,
        caller: Optional[str],
        amount: int,
        destination: str,
        outcome: SwapOutcome,
        **extra: Any,
    ) -> dict[str, Any]:
        closed = record.with_asset(0).with_premium(0)
        return self._payload(
            closed, caller, amount, CUSTODY, destination,
            outcome=outcome.value,
            released_asset=record.asset.current,
            released_premium=record.premium.current,
            **extra,
        )

    def _emit(self, kind: EventKind, now: datetime, payload: dict[str, Any]) -> None:
        with self._counter_lock:
            self._event_counter += 1
            event_id = f"EVT-{self._event_counter:08d}"
        event = EventRecord.create(
            event_id=event_id,
            event_kind=kind,
            actor_id=payload["caller"],
            payload=payload,
            timestamp_utc=now,
        )
        try:
            self._sink.append(event)
        except (ValueError, OSError):
            log.exception("Event sink rejected %s for committed transition", event_id)
            raise


def _is_amount(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
