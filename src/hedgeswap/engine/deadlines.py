"""Deadline arithmetic for a swap.

Given the agreed start time, a time quantum delta, and which side escrows
first, derive:

    premium_deadline = start + delta
    asset_deadline   = start + delta      (asset escrowed first)
                       start + 2 * delta  (otherwise)
    timeout          = start + 2 * delta

The ordering premium_deadline <= asset_deadline <= timeout holds by
construction for every positive delta. It is never re-checked after the
fact.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from hedgeswap.errors import InvalidParametersError


@dataclass(frozen=True)
class SwapDeadlines:
    premium_deadline: datetime
    asset_deadline: datetime
    timeout: datetime


def compute_deadlines(
    start: datetime,
    delta: timedelta,
    asset_escrowed_first: bool,
) -> SwapDeadlines:
    """Compute the three deadlines of a swap. Pure.

    Raises InvalidParametersError if delta is not strictly positive.
    """
    if delta <= timedelta(0):
        raise InvalidParametersError(f"delta must be positive, got {delta}")
    first = start + delta
    second = start + 2 * delta
    return SwapDeadlines(
        premium_deadline=first,
        asset_deadline=first if asset_escrowed_first else second,
        timeout=second,
    )
