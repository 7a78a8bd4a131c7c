"""In-memory pool provider for dry runs and tests."""

import logging
from typing import Iterable, Optional

from refswap.pools.base import PoolDataProvider
from refswap.pools.models import Pool, StablePool

logger = logging.getLogger(__name__)


class StaticPoolProvider(PoolDataProvider):
    """Serves a fixed set of pool snapshots.

    The snapshot can be swapped with `set_pools` to simulate reserve
    changes between refresh cycles.
    """

    def __init__(self, pools: Optional[Iterable[Pool]] = None):
        self._pools: dict[int, Pool] = {}
        self.fetch_count = 0
        self.refresh_count = 0
        self.set_pools(pools or [])

    def set_pools(self, pools: Iterable[Pool]) -> None:
        self._pools = {pool.id: pool for pool in pools}
        logger.debug(f"Static snapshot now holds {len(self._pools)} pools")

    async def get_pool(self, pool_id: int) -> Pool:
        self.fetch_count += 1
        try:
            return self._pools[pool_id]
        except KeyError:
            raise LookupError(f"Pool {pool_id} not found")

    async def get_stable_pool(self, pool_id: int) -> StablePool:
        pool = await self.get_pool(pool_id)
        if not isinstance(pool, StablePool):
            raise LookupError(f"Pool {pool_id} is not a stable pool")
        return pool

    async def list_pools(self, refresh: bool = False) -> list[Pool]:
        self.fetch_count += 1
        if refresh:
            self.refresh_count += 1
        return list(self._pools.values())
