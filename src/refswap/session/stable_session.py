"""Quote session for a single stable pool."""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from refswap.errors import EstimationError, SwapEngineError
from refswap.execution.transactions import PendingTransaction
from refswap.pools.models import StablePool
from refswap.session.base import BaseQuoteSession, SessionState

logger = logging.getLogger(__name__)


class StableSwapSession(BaseQuoteSession):
    """Quotes swaps on one stable pool without a route search.

    Alongside the fee-adjusted output it tracks `no_fee_amount`, the
    output the curve would give with no pool fee. Timer refreshes are
    skipped while the amount is effectively zero.
    """

    def __init__(self, *args, stable_pool: Optional[StablePool] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.pool: Optional[StablePool] = stable_pool
        self.no_fee_amount: Optional[Decimal] = None

    async def _estimate(self, background: bool) -> int:
        if self.closed:
            return self._generation
        generation = self._next_generation()
        if not background:
            self.can_swap = False

        if not self.has_valid_pair():
            self.token_out_amount = None
            self.no_fee_amount = None
            self._reset()
            return generation

        self.error = None
        if not self.has_amount():
            self.token_out_amount = Decimal("0")
            self.no_fee_amount = Decimal("0")
            self._reset()
            return generation

        token_in, token_out, amount_in = self.token_in, self.token_out, self.amount_in
        self.state = SessionState.ESTIMATING
        if background:
            self.loading_trigger = True

        try:
            result = await self.search.estimate_stable_swap(
                token_in,
                token_out,
                amount_in,
                stable_pool=self.pool,
                loading_trigger=background,
            )
            if not self._is_current(generation):
                logger.debug(f"Discarding superseded stable estimate #{generation}")
                return generation
            if result.pool is None or result.estimate <= 0:
                raise EstimationError(f"Stable pool cannot quote {amount_in} {token_in.symbol}")

            self.can_swap = True
            if not background:
                self.no_fee_amount = result.dy
                self.token_out_amount = result.estimate
                logger.info(
                    f"Stable quote #{generation}: {amount_in} {token_in.symbol} -> "
                    f"{result.estimate} {token_out.symbol} (no fee: {result.dy})"
                )
            self.pool = result.pool
            self.state = SessionState.QUOTED

        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"Ignoring failure of superseded stable estimate #{generation}: {e}")
                return generation
            error = e if isinstance(e, SwapEngineError) else EstimationError(cause=e)
            logger.warning(f"Stable estimate #{generation} failed: {error}")
            self._record_estimation_failure(error)
            self.no_fee_amount = None

        finally:
            if background:
                self.loading_trigger = False

        return generation

    async def _submit(self, use_near_balance: bool) -> PendingTransaction:
        return await self.submitter.stable_swap(
            pool=self.pool,
            token_in=self.token_in,
            token_out=self.token_out,
            amount_in=self.amount_in,
            min_amount_out=self.min_amount_out,
            use_near_balance=use_near_balance,
            callback_path=self.config.callback_path,
        )
