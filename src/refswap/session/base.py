"""Shared quote session state machine.

A session owns the visible quote for one set of swap parameters, keeps
it fresh on a timer and records estimation/submission errors instead of
raising them.

Ordering policy: the most recently *initiated* estimation wins. Every
cycle takes a generation number and a cycle whose generation is no
longer current finishes without touching session state.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from refswap.config import SessionConfig
from refswap.errors import SubmissionError, SwapEngineError
from refswap.execution.submitter import ExecutionSubmitter
from refswap.execution.transactions import PendingTransaction
from refswap.pools.models import Token
from refswap.routing.search import RouteSearchService
from refswap.session.scheduler import RefreshScheduler
from refswap.utils.numbers import Amount, is_effectively_zero, percent_less, to_decimal

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class SessionState(str, Enum):
    IDLE = "idle"
    ESTIMATING = "estimating"
    QUOTED = "quoted"
    ERRORED = "errored"
    CLOSED = "closed"


class BaseQuoteSession(ABC):
    """Base class for quote sessions."""

    def __init__(
        self,
        search: RouteSearchService,
        submitter: ExecutionSubmitter,
        config: Optional[SessionConfig] = None,
        token_in: Optional[Token] = None,
        token_out: Optional[Token] = None,
        amount_in: str = "",
        slippage_tolerance: Optional[Amount] = None,
    ):
        self.search = search
        self.submitter = submitter
        self.config = config or SessionConfig()

        self.token_in = token_in
        self.token_out = token_out
        self.amount_in = amount_in
        self.slippage_tolerance = to_decimal(
            slippage_tolerance if slippage_tolerance is not None else self.config.default_slippage
        )

        self.state = SessionState.IDLE
        self.can_swap = False
        self.token_out_amount: Optional[Decimal] = None
        self.error: Optional[SwapEngineError] = None
        self.loading_trigger = False
        self.loading_pause = False

        self._generation = 0
        self.scheduler = RefreshScheduler(
            self.config.refresh_interval,
            self._refresh_cycle,
            name=f"{type(self).__name__}-refresh",
        )

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def min_amount_out(self) -> Optional[Decimal]:
        """Visible output reduced by the slippage tolerance."""
        if self.token_out_amount is None:
            return None
        return percent_less(self.slippage_tolerance, self.token_out_amount)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    def has_valid_pair(self) -> bool:
        return (
            self.token_in is not None
            and self.token_out is not None
            and self.token_in.id != self.token_out.id
        )

    def has_amount(self) -> bool:
        return not is_effectively_zero(self.amount_in)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Run the initial estimation and arm the refresh timer."""
        await self.estimate()
        self._rearm()

    async def close(self) -> None:
        """Tear down the timer; the session ignores all later results."""
        self._generation += 1
        self.state = SessionState.CLOSED
        await self.scheduler.stop()
        logger.debug(f"{type(self).__name__} closed")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def pause(self) -> None:
        """Freeze background refreshes, e.g. while the user confirms a swap."""
        self.loading_pause = True
        self.scheduler.pause()

    def resume(self) -> None:
        self.loading_pause = False
        self.scheduler.resume()

    def _rearm(self) -> None:
        if self.closed or self.loading_trigger or self.loading_pause:
            return
        self.scheduler.schedule()

    # ------------------------------------------------------------------
    # Estimation
    # ------------------------------------------------------------------

    async def update(
        self,
        token_in: Optional[Token] = _UNSET,
        token_out: Optional[Token] = _UNSET,
        amount_in: str = _UNSET,
        slippage_tolerance: Optional[Amount] = _UNSET,
    ) -> None:
        """Apply parameter changes; token or amount changes re-estimate now."""
        if self.closed:
            return

        changed = False
        if token_in is not _UNSET and token_in != self.token_in:
            self.token_in, changed = token_in, True
        if token_out is not _UNSET and token_out != self.token_out:
            self.token_out, changed = token_out, True
        if amount_in is not _UNSET and amount_in != self.amount_in:
            self.amount_in, changed = amount_in, True
        if slippage_tolerance is not _UNSET and slippage_tolerance is not None:
            self.slippage_tolerance = to_decimal(slippage_tolerance)

        if not changed:
            return
        await self.estimate()
        self._rearm()

    async def estimate(self) -> int:
        """Run a user-triggered estimation that updates visible state."""
        if self.closed:
            return self._generation
        return await self._estimate(background=False)

    async def refresh(self) -> None:
        """Refresh now, as if the timer had fired."""
        if self.closed:
            return
        self.scheduler.disarm()
        try:
            await self._refresh_cycle()
        finally:
            self._rearm()

    async def _refresh_cycle(self) -> None:
        """Silent pass against fresh pools, then publish if still current."""
        if self.closed:
            return
        if not self.has_valid_pair() or not self.has_amount():
            logger.debug(f"{type(self).__name__}: skipping refresh, nothing to quote")
            return

        generation = await self._estimate(background=True)
        if self._is_current(generation) and self.error is None:
            await self._estimate(background=False)

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self.closed

    def _reset(self) -> None:
        self.can_swap = False
        if not self.closed:
            self.state = SessionState.IDLE

    def _record_estimation_failure(self, error: SwapEngineError) -> None:
        self.can_swap = False
        self.token_out_amount = None
        self.error = error
        self.state = SessionState.ERRORED

    @abstractmethod
    async def _estimate(self, background: bool) -> int:
        """Run one estimation cycle and return its generation."""
        pass

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @abstractmethod
    async def _submit(self, use_near_balance: bool) -> PendingTransaction:
        pass

    async def make_swap(self, use_near_balance: bool = True) -> Optional[PendingTransaction]:
        """Submit the current quote; failures land in `error`."""
        if self.closed:
            logger.debug(f"{type(self).__name__}: ignoring swap on a closed session")
            return None
        try:
            pending = await self._submit(use_near_balance)
        except asyncio.CancelledError:
            raise
        except SwapEngineError as e:
            logger.error(f"Swap submission failed: {e}")
            self.error = e
            return None
        except Exception as e:
            logger.error(f"Swap submission failed: {type(e).__name__}: {e}")
            self.error = SubmissionError(cause=e)
            return None
        return pending
