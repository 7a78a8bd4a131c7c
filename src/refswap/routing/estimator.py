"""Best-route estimation over a pool snapshot."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from refswap.errors import EstimationError
from refswap.pools.models import Pool, StablePool
from refswap.routing.base import PoolMode, RouteEstimate, RouteLeg
from refswap.routing.math import average_fee_for_routes, constant_product_out, stable_swap_out
from refswap.utils.numbers import Amount, is_effectively_zero, to_decimal

logger = logging.getLogger(__name__)


def expected_output(legs: Iterable[RouteLeg], token_out: str) -> Decimal:
    """Total amount of token_out produced by a route."""
    return sum((leg.estimate for leg in legs if leg.output_token == token_out), Decimal(0))


def average_fee(legs: list[RouteLeg]) -> Decimal:
    """Average fee in basis points for a route's legs.

    Stable and smart routes pay every pool's fee in sequence; parallel
    routes pay each pool's fee on the share routed through it.
    """
    if not legs:
        return Decimal("0")
    first = legs[0]
    if first.status in (PoolMode.SMART, PoolMode.STABLE):
        return Decimal(sum(leg.pool.fee for leg in legs))
    return average_fee_for_routes(first.all_routes, first.route_inputs, first.total_input_amount)


@dataclass
class _Hop:
    pool: Pool
    token_in: str
    token_out: str
    amount_in: Decimal
    amount_out: Decimal


@dataclass
class _Candidate:
    mode: PoolMode
    routes: list[list[_Hop]]

    @property
    def amount_out(self) -> Decimal:
        return sum((route[-1].amount_out for route in self.routes), Decimal(0))

    @property
    def total_in(self) -> Decimal:
        return sum((route[0].amount_in for route in self.routes), Decimal(0))

    @property
    def fee(self) -> Decimal:
        return average_fee_for_routes(
            [[hop.pool for hop in route] for route in self.routes],
            [route[0].amount_in for route in self.routes],
            self.total_in,
        )


class RouteEstimator:
    """Computes candidate routes and picks the one with the best output.

    Candidates are direct constant-product pools, a parallel split over
    all direct pools, the stable pool, and two-hop routes through an
    intermediate token.
    """

    def __init__(
        self,
        stable_pool_ids: Iterable[int] = (),
        stable_token_ids: Iterable[str] = (),
        enable_smart_routes: bool = True,
        enable_parallel_split: bool = True,
    ):
        self.stable_pool_ids = frozenset(stable_pool_ids)
        self.stable_token_ids = frozenset(stable_token_ids)
        self.enable_smart_routes = enable_smart_routes
        self.enable_parallel_split = enable_parallel_split

    def is_stable_pool(self, pool: Pool) -> bool:
        return isinstance(pool, StablePool) and (pool.is_stable or pool.id in self.stable_pool_ids)

    def is_stable_token(self, token_id: str) -> bool:
        if not self.stable_token_ids:
            return True
        return token_id in self.stable_token_ids

    def hop_output(self, pool: Pool, token_in: str, token_out: str, amount_in: Decimal) -> Decimal:
        """Output of swapping through one pool; zero when the pool cannot quote."""
        try:
            if self.is_stable_pool(pool):
                out, _ = stable_swap_out(
                    pool.amp,
                    pool.amounts,
                    pool.token_account_ids.index(token_in),
                    pool.token_account_ids.index(token_out),
                    amount_in,
                    pool.fee,
                )
                return out
            return constant_product_out(
                amount_in, pool.reserve(token_in), pool.reserve(token_out), pool.fee
            )
        except (ArithmeticError, ValueError) as e:
            logger.debug(f"Pool {pool.id} cannot quote {token_in}->{token_out}: {e}")
            return Decimal("0")

    def estimate(
        self,
        token_in: str,
        token_out: str,
        amount_in: Optional[Amount],
        pools: Iterable[Pool],
    ) -> RouteEstimate:
        """
        Find the best route for a swap.

        Args:
            token_in: Input token id
            token_out: Output token id
            amount_in: Readable input amount (blank or zero short-circuits)
            pools: Pool snapshot to search

        Returns:
            RouteEstimate tagged with its pool mode

        Raises:
            EstimationError: no path, insufficient liquidity or bad amount
        """
        if is_effectively_zero(amount_in):
            return RouteEstimate.zero()

        try:
            amount = to_decimal(amount_in)
        except ValueError as e:
            raise EstimationError(str(e))
        if not amount.is_finite() or amount <= 0:
            raise EstimationError(f"Amount must be positive, got {amount}")
        if token_in == token_out:
            raise EstimationError("Input and output tokens are identical")

        by_token: dict[str, list[Pool]] = defaultdict(list)
        for pool in pools:
            for token_id in pool.token_account_ids:
                by_token[token_id].append(pool)

        candidates = self._direct_candidates(token_in, token_out, amount, by_token)
        candidates += self._stable_candidates(token_in, token_out, amount, by_token)
        if self.enable_smart_routes:
            candidates += self._smart_candidates(token_in, token_out, amount, by_token)

        if not candidates:
            raise EstimationError(f"No pool path connects {token_in} and {token_out}")

        viable = [c for c in candidates if c.amount_out > 0]
        if not viable:
            raise EstimationError(
                f"Insufficient liquidity to swap {amount} {token_in} for {token_out}"
            )

        best = max(viable, key=lambda c: (c.amount_out, -c.fee))
        result = self._to_estimate(best, amount, token_out)
        logger.debug(
            f"Best of {len(viable)} candidate(s) for {amount} {token_in}->{token_out}: "
            f"{result.mode.value} via pools {[leg.pool.id for leg in result.legs]} "
            f"-> {result.amount_out}"
        )
        return result

    def _direct_candidates(self, token_in, token_out, amount, by_token) -> list[_Candidate]:
        direct = [
            pool
            for pool in by_token.get(token_in, [])
            if pool.has_tokens(token_out) and not self.is_stable_pool(pool)
        ]
        candidates = []
        for pool in direct:
            out = self.hop_output(pool, token_in, token_out, amount)
            candidates.append(
                _Candidate(PoolMode.PARALLEL, [[_Hop(pool, token_in, token_out, amount, out)]])
            )

        if self.enable_parallel_split and len(direct) > 1:
            depth = sum((pool.reserve(token_in) for pool in direct), Decimal(0))
            if depth > 0:
                routes = []
                for pool in direct:
                    share = amount * pool.reserve(token_in) / depth
                    out = self.hop_output(pool, token_in, token_out, share)
                    routes.append([_Hop(pool, token_in, token_out, share, out)])
                candidates.append(_Candidate(PoolMode.PARALLEL, routes))
        return candidates

    def _stable_candidates(self, token_in, token_out, amount, by_token) -> list[_Candidate]:
        if not (self.is_stable_token(token_in) and self.is_stable_token(token_out)):
            return []
        candidates = []
        for pool in by_token.get(token_in, []):
            if self.is_stable_pool(pool) and pool.has_tokens(token_out):
                out = self.hop_output(pool, token_in, token_out, amount)
                candidates.append(
                    _Candidate(PoolMode.STABLE, [[_Hop(pool, token_in, token_out, amount, out)]])
                )
        return candidates

    def _smart_candidates(self, token_in, token_out, amount, by_token) -> list[_Candidate]:
        candidates = []
        for first in by_token.get(token_in, []):
            for middle in first.other_tokens(token_in):
                if middle == token_out:
                    continue
                middle_out = self.hop_output(first, token_in, middle, amount)
                for second in by_token.get(middle, []):
                    if second.id == first.id or not second.has_tokens(token_out):
                        continue
                    out = self.hop_output(second, middle, token_out, middle_out)
                    hops = [
                        _Hop(first, token_in, middle, amount, middle_out),
                        _Hop(second, middle, token_out, middle_out, out),
                    ]
                    all_stable = all(
                        self.is_stable_pool(h.pool)
                        and self.is_stable_token(h.token_in)
                        and self.is_stable_token(h.token_out)
                        for h in hops
                    )
                    mode = PoolMode.STABLE if all_stable else PoolMode.SMART
                    candidates.append(_Candidate(mode, [hops]))
        return candidates

    def _to_estimate(self, candidate: _Candidate, amount: Decimal, token_out: str) -> RouteEstimate:
        all_routes = [[hop.pool for hop in route] for route in candidate.routes]
        all_node_routes = [[route[0].token_in] + [hop.token_out for hop in route] for route in candidate.routes]
        route_inputs = [route[0].amount_in for route in candidate.routes]

        legs = []
        for index, route in enumerate(candidate.routes):
            for position, hop in enumerate(route):
                legs.append(
                    RouteLeg(
                        pool=hop.pool,
                        status=candidate.mode,
                        input_token=hop.token_in,
                        output_token=hop.token_out,
                        pool_amount_in=hop.amount_in if position == 0 else None,
                        estimate=hop.amount_out,
                        total_input_amount=amount,
                        route_index=index,
                        all_routes=all_routes,
                        all_node_routes=all_node_routes,
                        route_inputs=route_inputs,
                    )
                )

        return RouteEstimate(
            mode=candidate.mode,
            legs=legs,
            amount_in=amount,
            amount_out=expected_output(legs, token_out),
            average_fee=average_fee(legs),
        )
