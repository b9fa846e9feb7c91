"""In-memory ledger: a LedgerGateway for tests, simulations, and dry runs.

Keeps token balances per (denomination, account), token allowances granted
to custody, and native balances. A per-denomination fee in basis points
models tokens that deduct a fee on every transfer, which is exactly the
case the engine's exact-amount checks exist for.
"""

from __future__ import annotations

from typing import Dict, Tuple

from hedgeswap.ledger.gateway import LedgerError


BPS_DENOMINATOR = 10_000


class InMemoryLedger:
    """Balances and custody held in dictionaries.

    Usage:
        ledger = InMemoryLedger()
        ledger.mint("USDC", "alice", 1_000)
        ledger.approve("USDC", "alice", 1_000)
        ledger.fund_native("bob", 50)
        received = ledger.transfer_in("USDC", "alice", 100)
    """

    def __init__(self, custody: str = "custody") -> None:
        self.custody = custody
        self._balances: Dict[Tuple[str, str], int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._native: Dict[str, int] = {}
        self._fees_bps: Dict[str, int] = {}
        self._failing_native: set[str] = set()

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def mint(self, denomination: str, account: str, amount: int) -> None:
        key = (denomination, account)
        self._balances[key] = self._balances.get(key, 0) + amount

    def approve(self, denomination: str, owner: str, amount: int) -> None:
        """Allow custody to pull up to amount of denomination from owner."""
        self._allowances[(denomination, owner)] = amount

    def fund_native(self, account: str, amount: int) -> None:
        self._native[account] = self._native.get(account, 0) + amount

    def set_transfer_fee(self, denomination: str, fee_bps: int) -> None:
        if not 0 <= fee_bps < BPS_DENOMINATOR:
            raise ValueError(f"fee_bps must be in [0, {BPS_DENOMINATOR}), got {fee_bps}")
        self._fees_bps[denomination] = fee_bps

    def fail_native_transfers_to(self, account: str, failing: bool = True) -> None:
        """Make native transfers to account report failure (a rejecting receiver)."""
        if failing:
            self._failing_native.add(account)
        else:
            self._failing_native.discard(account)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def balance(self, denomination: str, account: str) -> int:
        return self._balances.get((denomination, account), 0)

    def allowance(self, denomination: str, owner: str) -> int:
        return self._allowances.get((denomination, owner), 0)

    def native_balance(self, account: str) -> int:
        return self._native.get(account, 0)

    def receive_native(self, source: str, amount: int) -> None:
        """Move native value attached to a call from source into custody."""
        self._debit_native(source, amount)
        self.fund_native(self.custody, amount)

    # ------------------------------------------------------------------
    # LedgerGateway
    # ------------------------------------------------------------------

    def transfer_in(self, denomination: str, source: str, amount: int) -> int:
        allowed = self.allowance(denomination, source)
        if allowed < amount:
            raise LedgerError(
                f"Allowance {allowed} {denomination} from {source} is below {amount}"
            )
        received = self._move(denomination, source, self.custody, amount)
        self._allowances[(denomination, source)] = allowed - amount
        return received

    def transfer_out(self, denomination: str, destination: str, amount: int) -> int:
        return self._move(denomination, self.custody, destination, amount)

    def native_transfer(self, destination: str, amount: int) -> bool:
        if destination in self._failing_native:
            return False
        if self.native_balance(self.custody) < amount:
            return False
        self._debit_native(self.custody, amount)
        self.fund_native(destination, amount)
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _move(self, denomination: str, source: str, destination: str, amount: int) -> int:
        if amount < 0:
            raise LedgerError(f"Negative transfer amount: {amount}")
        available = self.balance(denomination, source)
        if available < amount:
            raise LedgerError(
                f"Balance {available} {denomination} of {source} is below {amount}"
            )
        fee = amount * self._fees_bps.get(denomination, 0) // BPS_DENOMINATOR
        self._balances[(denomination, source)] = available - amount
        self.mint(denomination, destination, amount - fee)
        return amount - fee

    def _debit_native(self, account: str, amount: int) -> None:
        available = self.native_balance(account)
        if available < amount:
            raise LedgerError(f"Native balance {available} of {account} is below {amount}")
        self._native[account] = available - amount
