"""Route search service used by quote sessions.

Loads the pool universe from a provider and runs the estimator over it.
"""

import logging
from decimal import Decimal
from typing import Optional

from refswap.config import SessionConfig
from refswap.errors import EstimationError, SwapEngineError
from refswap.pools.base import PoolDataProvider
from refswap.pools.models import StablePool, Token
from refswap.routing.base import RouteEstimate, StableSwapEstimate
from refswap.routing.estimator import RouteEstimator
from refswap.routing.math import stable_swap_out
from refswap.utils.numbers import Amount, is_effectively_zero, to_decimal

logger = logging.getLogger(__name__)


class RouteSearchService:
    """Estimates swaps against fresh or cached pool snapshots."""

    def __init__(
        self,
        provider: PoolDataProvider,
        estimator: Optional[RouteEstimator] = None,
        config: Optional[SessionConfig] = None,
    ):
        self.provider = provider
        self.config = config or SessionConfig()
        self.estimator = estimator or RouteEstimator(
            stable_pool_ids=self.config.stable_pool_ids,
            stable_token_ids=self.config.stable_token_ids,
        )

    async def estimate_swap(
        self,
        token_in: Token,
        token_out: Token,
        amount_in: Amount,
        loading_trigger: bool = False,
    ) -> RouteEstimate:
        """
        Estimate the best route across all pool types.

        Args:
            token_in: Input token
            token_out: Output token
            amount_in: Readable input amount
            loading_trigger: Refetch pools instead of using the cached snapshot

        Returns:
            RouteEstimate for the best route

        Raises:
            EstimationError: if no route can quote the amount
        """
        if is_effectively_zero(amount_in):
            return RouteEstimate.zero()

        try:
            pools = await self.provider.list_pools(refresh=loading_trigger)
        except SwapEngineError:
            raise
        except Exception as e:
            logger.warning(f"Pool fetch failed: {type(e).__name__}: {e}")
            raise EstimationError("Failed to load pools", cause=e)

        return self.estimator.estimate(token_in.id, token_out.id, amount_in, pools)

    async def estimate_stable_swap(
        self,
        token_in: Token,
        token_out: Token,
        amount_in: Amount,
        stable_pool: Optional[StablePool] = None,
        loading_trigger: bool = False,
    ) -> StableSwapEstimate:
        """
        Estimate a swap on a single stable pool.

        Uses the given pool snapshot unless it is missing or a refresh is
        requested, in which case the configured stable pool is fetched.
        """
        pool = stable_pool
        if pool is None or loading_trigger:
            pool_id = stable_pool.id if stable_pool else next(iter(sorted(self.config.stable_pool_ids)), None)
            if pool_id is None:
                raise EstimationError("No stable pool configured")
            try:
                pool = await self.provider.get_stable_pool(pool_id)
            except Exception as e:
                logger.warning(f"Stable pool {pool_id} fetch failed: {type(e).__name__}: {e}")
                raise EstimationError(f"Failed to load stable pool {pool_id}", cause=e)

        if not pool.has_tokens(token_in.id, token_out.id):
            raise EstimationError(
                f"Stable pool {pool.id} does not trade {token_in.symbol}/{token_out.symbol}"
            )

        if is_effectively_zero(amount_in):
            return StableSwapEstimate(estimate=Decimal("0"), dy=Decimal("0"), pool=pool)

        try:
            amount = to_decimal(amount_in)
            estimate, dy = stable_swap_out(
                pool.amp,
                pool.amounts,
                pool.token_account_ids.index(token_in.id),
                pool.token_account_ids.index(token_out.id),
                amount,
                pool.fee,
            )
        except (ArithmeticError, ValueError) as e:
            raise EstimationError(f"Stable pool {pool.id} cannot quote {amount_in}", cause=e)

        if estimate <= 0:
            raise EstimationError(f"Insufficient liquidity in stable pool {pool.id}")

        logger.debug(f"Stable estimate {amount} {token_in.symbol} -> {estimate} {token_out.symbol} (dy={dy})")
        return StableSwapEstimate(estimate=estimate, dy=dy, pool=pool)
