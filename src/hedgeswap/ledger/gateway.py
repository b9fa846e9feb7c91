"""Ledger gateway contract: how the engine asks a ledger to move value.

The engine decides that value should move and how much. A gateway carries
out the movement on a concrete ledger and reports what actually moved.
The swap state machine never talks to a ledger any other way, so adding a
ledger means implementing this Protocol and nothing else.

Custody: each gateway has one custody account that holds escrowed funds.
transfer_in pulls into custody, transfer_out pays out of custody, and
native_transfer pays the ledger's native currency out of custody.

Native value has no pull method. A premium arrives as value attached to
the escrow_premium call, and the transport layer that receives the call
must guarantee that the stated payment has landed in custody before it
invokes the engine (on an EVM chain, the msg.value of the transaction;
with InMemoryLedger, receive_native). The engine trusts the stated
payment and later pays refunds and forfeits out of custody.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class LedgerError(Exception):
    """Raised by a gateway when a movement cannot be carried out.

    Examples: insufficient balance or allowance, unknown denomination,
    rejected or reverted transaction.
    """


@runtime_checkable
class LedgerGateway(Protocol):
    """Abstract contract for ledger implementations."""

    def transfer_in(self, denomination: str, source: str, amount: int) -> int:
        """Pull amount of denomination from source into custody.

        Returns the amount custody actually received, which can differ from
        amount for tokens that charge or round on transfer.
        """
        ...

    def transfer_out(self, denomination: str, destination: str, amount: int) -> int:
        """Pay amount of denomination from custody to destination.

        Returns the amount destination actually received.
        """
        ...

    def native_transfer(self, destination: str, amount: int) -> bool:
        """Pay amount of the native currency from custody. True on success."""
        ...
