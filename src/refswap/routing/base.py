"""Route and quote types produced by the estimator."""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from refswap.pools.models import Pool, StablePool
from refswap.utils.numbers import percent_less


class PoolMode(str, Enum):
    """How the legs of a route are executed on-chain."""

    PARALLEL = "parallel swap"
    STABLE = "stable swap"
    SMART = "smart routing"


@dataclass
class RouteLeg:
    """One hop of a route through a single pool.

    `pool_amount_in` is None for chained hops that consume the previous
    hop's output.
    """

    pool: Pool
    status: PoolMode
    input_token: str
    output_token: str
    pool_amount_in: Optional[Decimal]
    estimate: Decimal
    total_input_amount: Decimal
    route_index: int = 0
    all_routes: list[list[Pool]] = field(default_factory=list)
    all_node_routes: list[list[str]] = field(default_factory=list)
    route_inputs: list[Decimal] = field(default_factory=list)

    @property
    def is_chained(self) -> bool:
        return self.pool_amount_in is None


@dataclass
class RouteEstimate:
    """Best route found by the estimator, tagged with its pool mode."""

    mode: PoolMode
    legs: list[RouteLeg]
    amount_in: Decimal
    amount_out: Decimal
    average_fee: Decimal

    @classmethod
    def zero(cls) -> "RouteEstimate":
        """Explicit zero-output result for a blank or zero amount."""
        return cls(
            mode=PoolMode.PARALLEL,
            legs=[],
            amount_in=Decimal("0"),
            amount_out=Decimal("0"),
            average_fee=Decimal("0"),
        )

    @property
    def is_zero(self) -> bool:
        return not self.legs and self.amount_out == 0

    @property
    def pool(self) -> Optional[Pool]:
        return self.legs[0].pool if self.legs else None


@dataclass
class StableSwapEstimate:
    """Stable pool quote: fee-adjusted output plus the no-fee amount."""

    estimate: Decimal
    dy: Decimal
    pool: Optional[StablePool]


@dataclass
class Quote:
    """Tradeable quote derived from one estimation cycle."""

    token_out_amount: Decimal
    slippage_tolerance: Decimal
    average_fee: Decimal = Decimal("0")
    legs: list[RouteLeg] = field(default_factory=list)
    mode: Optional[PoolMode] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def min_amount_out(self) -> Decimal:
        return percent_less(self.slippage_tolerance, self.token_out_amount)

    @property
    def age_seconds(self) -> float:
        return time.time() - self.timestamp

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and display."""
        return {
            "token_out_amount": str(self.token_out_amount),
            "min_amount_out": str(self.min_amount_out),
            "average_fee": str(self.average_fee),
            "slippage_tolerance": str(self.slippage_tolerance),
            "mode": self.mode.value if self.mode else None,
            "pools": [leg.pool.id for leg in self.legs],
        }
