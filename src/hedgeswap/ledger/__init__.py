"""Ledger gateways: the contract and its implementations.

The EVM gateway lives in hedgeswap.ledger.evm and is imported on demand,
since it pulls in web3.
"""

from hedgeswap.ledger.gateway import LedgerError, LedgerGateway
from hedgeswap.ledger.memory import InMemoryLedger

__all__ = [
    "InMemoryLedger",
    "LedgerError",
    "LedgerGateway",
]
