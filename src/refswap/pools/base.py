"""Abstract pool data provider interface."""

from abc import ABC, abstractmethod

from refswap.pools.models import Pool, StablePool


class PoolDataProvider(ABC):
    """Source of pool snapshots for route estimation."""

    @abstractmethod
    async def get_pool(self, pool_id: int) -> Pool:
        """Fetch one pool by id."""
        pass

    @abstractmethod
    async def get_stable_pool(self, pool_id: int) -> StablePool:
        """Fetch one stable pool, including its curve parameters."""
        pass

    @abstractmethod
    async def list_pools(self, refresh: bool = False) -> list[Pool]:
        """
        Get the pool universe used for route search.

        Args:
            refresh: Bypass any cached snapshot and refetch

        Returns:
            List of pool snapshots
        """
        pass
