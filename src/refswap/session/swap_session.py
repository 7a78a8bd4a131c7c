"""Quote session over the full route search."""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from refswap.errors import EstimationError, SwapEngineError
from refswap.execution.transactions import PendingTransaction
from refswap.pools.models import Pool
from refswap.routing.base import PoolMode, Quote, RouteLeg
from refswap.routing.estimator import average_fee, expected_output
from refswap.session.base import BaseQuoteSession, SessionState

logger = logging.getLogger(__name__)


class SwapSession(BaseQuoteSession):
    """Keeps the best multi-pool quote for one swap fresh.

    Background (timer) passes only update `pool`, `avg_fee` and
    `can_swap`; the visible output and route legs change only on
    user-triggered passes.

    Example:
        async with SwapSession(search, submitter, config, near, usdt, "1") as session:
            print(session.token_out_amount, session.min_amount_out)
            await session.update(amount_in="2")
            pending = await session.make_swap(use_near_balance=True)
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.pool: Optional[Pool] = None
        self.avg_fee = Decimal("0")
        self.swaps_to_do: Optional[list[RouteLeg]] = None
        self.quote: Optional[Quote] = None

    @property
    def pools(self) -> Optional[list[Pool]]:
        if self.swaps_to_do is None:
            return None
        return [leg.pool for leg in self.swaps_to_do]

    @property
    def is_parallel_swap(self) -> bool:
        return bool(self.swaps_to_do) and all(
            leg.status == PoolMode.PARALLEL for leg in self.swaps_to_do
        )

    @property
    def is_smart_route_v2_swap(self) -> bool:
        return bool(self.swaps_to_do) and all(
            leg.status != PoolMode.SMART for leg in self.swaps_to_do
        )

    def _reset(self) -> None:
        super()._reset()
        self.swaps_to_do = None
        self.quote = None

    async def _estimate(self, background: bool) -> int:
        if self.closed:
            return self._generation
        generation = self._next_generation()
        if not background:
            self.can_swap = False

        if not self.has_valid_pair():
            self.token_out_amount = None
            self._reset()
            return generation

        self.error = None
        if not self.has_amount():
            self.token_out_amount = Decimal("0")
            self._reset()
            return generation

        token_in, token_out, amount_in = self.token_in, self.token_out, self.amount_in
        self.state = SessionState.ESTIMATING
        if background:
            self.loading_trigger = True

        try:
            estimate = await self.search.estimate_swap(
                token_in,
                token_out,
                amount_in,
                loading_trigger=background and not self.loading_pause,
            )
            if not self._is_current(generation):
                logger.debug(f"Discarding superseded estimate #{generation}")
                return generation
            if not estimate.legs:
                raise EstimationError(f"No route returned for {token_in.symbol}->{token_out.symbol}")

            self.can_swap = True
            self.avg_fee = average_fee(estimate.legs)
            self.pool = estimate.legs[0].pool

            if not background:
                self.token_out_amount = expected_output(estimate.legs, token_out.id)
                self.swaps_to_do = estimate.legs
                self.quote = Quote(
                    token_out_amount=self.token_out_amount,
                    slippage_tolerance=self.slippage_tolerance,
                    average_fee=self.avg_fee,
                    legs=estimate.legs,
                    mode=estimate.mode,
                )
                logger.info(
                    f"Quote #{generation}: {amount_in} {token_in.symbol} -> "
                    f"{self.token_out_amount} {token_out.symbol} ({estimate.mode.value}, "
                    f"fee {self.avg_fee} bps)"
                )
            self.state = SessionState.QUOTED

        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"Ignoring failure of superseded estimate #{generation}: {e}")
                return generation
            error = e if isinstance(e, SwapEngineError) else EstimationError(cause=e)
            logger.warning(f"Estimate #{generation} failed: {error}")
            self._record_estimation_failure(error)
            self.swaps_to_do = None
            self.quote = None

        finally:
            if background:
                self.loading_trigger = False

        return generation

    async def _submit(self, use_near_balance: bool) -> PendingTransaction:
        return await self.submitter.swap(
            swaps_to_do=self.swaps_to_do,
            token_in=self.token_in,
            token_out=self.token_out,
            amount_in=self.amount_in,
            slippage_tolerance=self.slippage_tolerance,
            use_near_balance=use_near_balance,
            callback_path=self.config.callback_path,
        )
