"""Pool snapshots and the providers that fetch them."""

from refswap.pools.base import PoolDataProvider
from refswap.pools.models import SIMPLE_POOL, STABLE_SWAP, Pool, StablePool, Token
from refswap.pools.ref_finance import RefPoolProvider
from refswap.pools.static import StaticPoolProvider

__all__ = [
    "SIMPLE_POOL",
    "STABLE_SWAP",
    "Pool",
    "StablePool",
    "Token",
    "PoolDataProvider",
    "RefPoolProvider",
    "StaticPoolProvider",
]
