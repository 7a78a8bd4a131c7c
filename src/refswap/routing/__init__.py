"""Route estimation over Ref Finance pools.

Route modes:
- PARALLEL: independent single-hop swaps, possibly split across pools
- STABLE: swaps on the stable pool
- SMART: chained multi-hop swaps through an intermediate token
"""

from refswap.routing.base import PoolMode, Quote, RouteEstimate, RouteLeg, StableSwapEstimate
from refswap.routing.estimator import RouteEstimator, average_fee, expected_output
from refswap.routing.search import RouteSearchService

__all__ = [
    "PoolMode",
    "Quote",
    "RouteEstimate",
    "RouteLeg",
    "StableSwapEstimate",
    "RouteEstimator",
    "RouteSearchService",
    "average_fee",
    "expected_output",
]
