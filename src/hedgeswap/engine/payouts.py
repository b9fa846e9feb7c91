"""Payout book: premium owed to an account that could not be pushed.

A terminal transition that moves both an asset leg and a premium leg is
committed once the asset leg has moved. If the premium push fails after
that point, the amount is credited here and the recipient pulls it later
with SwapStateMachine.withdraw_payout.
"""

from __future__ import annotations

from typing import Dict


class PayoutBook:
    def __init__(self) -> None:
        self._owed: Dict[str, int] = {}

    def credit(self, account: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Payout credit must be positive")
        self._owed[account] = self._owed.get(account, 0) + amount

    def balance(self, account: str) -> int:
        return self._owed.get(account, 0)

    def debit(self, account: str, amount: int) -> None:
        """Subtract a paid amount. Credits added since the read survive."""
        owed = self._owed.get(account, 0)
        if amount <= 0 or amount > owed:
            raise ValueError(f"Cannot debit {amount} from {account}, owed {owed}")
        if amount == owed:
            del self._owed[account]
        else:
            self._owed[account] = owed - amount

    def total(self) -> int:
        return sum(self._owed.values())

    def accounts(self) -> list[str]:
        return sorted(self._owed)
