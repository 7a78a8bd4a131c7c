"""Quote sessions: stateful, self-refreshing swap quotes."""

from refswap.session.base import BaseQuoteSession, SessionState
from refswap.session.scheduler import RefreshScheduler, SchedulerState
from refswap.session.stable_session import StableSwapSession
from refswap.session.swap_session import SwapSession

__all__ = [
    "BaseQuoteSession",
    "RefreshScheduler",
    "SchedulerState",
    "SessionState",
    "StableSwapSession",
    "SwapSession",
]
