"""Swap engine: clock, deadline arithmetic, registry, payouts, state machine."""

from hedgeswap.engine.clock import Clock, ManualClock, SystemClock
from hedgeswap.engine.deadlines import SwapDeadlines, compute_deadlines
from hedgeswap.engine.payouts import PayoutBook
from hedgeswap.engine.registry import SwapRegistry
from hedgeswap.engine.state_machine import SwapStateMachine

__all__ = [
    "Clock",
    "ManualClock",
    "PayoutBook",
    "SwapDeadlines",
    "SwapRegistry",
    "SwapStateMachine",
    "SystemClock",
    "compute_deadlines",
]
