"""Swap errors. Every rejection the engine can produce has a kind.

All errors are terminal for the attempted call: the engine never retries
internally and never mutates state when it raises. Callers decide whether
to try again later (for example once a deadline has passed).
"""

from __future__ import annotations

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    """Machine-readable classification of a rejection."""
    NOT_FOUND = "not_found"
    NOT_SET_UP = "not_set_up"
    ALREADY_SET_UP = "already_set_up"
    ALREADY_ESCROWED = "already_escrowed"
    NOT_ESCROWED = "not_escrowed"
    PREMIUM_NOT_ESCROWED = "premium_not_escrowed"
    WRONG_CALLER = "wrong_caller"
    INSUFFICIENT_PAYMENT = "insufficient_payment"
    INVALID_SECRET = "invalid_secret"
    INVALID_PARAMETERS = "invalid_parameters"
    DEADLINE_NOT_REACHED = "deadline_not_reached"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    TIMEOUT_NOT_REACHED = "timeout_not_reached"
    TIMEOUT_EXCEEDED = "timeout_exceeded"
    TRANSFER_MISMATCH = "transfer_mismatch"
    GATEWAY_FAILURE = "gateway_failure"


class SwapError(Exception):
    """Base class for all swap rejections."""

    kind: ErrorKind = ErrorKind.INVALID_PARAMETERS

    def __init__(self, message: str, commitment_key: Optional[bytes] = None) -> None:
        super().__init__(message)
        self.commitment_key = commitment_key


class NotFoundError(SwapError):
    kind = ErrorKind.NOT_FOUND


class NotSetUpError(NotFoundError):
    """Premium escrow attempted for a key that was never set up."""
    kind = ErrorKind.NOT_SET_UP


class AlreadySetUpError(SwapError):
    kind = ErrorKind.ALREADY_SET_UP


class AlreadyEscrowedError(SwapError):
    kind = ErrorKind.ALREADY_ESCROWED


class NotEscrowedError(SwapError):
    kind = ErrorKind.NOT_ESCROWED


class PremiumNotEscrowedError(SwapError):
    """Asset escrow attempted before the premium was posted."""
    kind = ErrorKind.PREMIUM_NOT_ESCROWED


class WrongCallerError(SwapError):
    kind = ErrorKind.WRONG_CALLER


class InsufficientPaymentError(SwapError):
    kind = ErrorKind.INSUFFICIENT_PAYMENT


class InvalidSecretError(SwapError):
    kind = ErrorKind.INVALID_SECRET


class InvalidParametersError(SwapError):
    kind = ErrorKind.INVALID_PARAMETERS


class DeadlineNotReachedError(SwapError):
    kind = ErrorKind.DEADLINE_NOT_REACHED


class DeadlineExceededError(SwapError):
    kind = ErrorKind.DEADLINE_EXCEEDED


class TimeoutNotReachedError(SwapError):
    kind = ErrorKind.TIMEOUT_NOT_REACHED


class TimeoutExceededError(SwapError):
    kind = ErrorKind.TIMEOUT_EXCEEDED


class TransferMismatchError(SwapError):
    """The ledger moved a different amount than requested.

    Loss-of-funds class: the whole operation is aborted, nothing is
    credited.
    """
    kind = ErrorKind.TRANSFER_MISMATCH

    def __init__(
        self,
        message: str,
        commitment_key: Optional[bytes] = None,
        requested: int = 0,
        actual: int = 0,
    ) -> None:
        super().__init__(message, commitment_key)
        self.requested = requested
        self.actual = actual


class GatewayFailureError(SwapError):
    kind = ErrorKind.GATEWAY_FAILURE
