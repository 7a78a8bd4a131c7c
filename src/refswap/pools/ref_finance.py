"""Ref Finance pool data from NEAR RPC and the Ref indexer.

RPC view calls: https://docs.near.org/api/rpc/contracts#call-a-contract-function
Indexer: https://guide.ref.finance/developers-1/api
"""

import asyncio
import base64
import json
import logging
import time
from decimal import Decimal
from typing import Any, Optional

import httpx

from refswap.config import Settings, get_settings
from refswap.pools.base import PoolDataProvider
from refswap.pools.models import SIMPLE_POOL, STABLE_SWAP, Pool, StablePool, Token
from refswap.utils.numbers import to_readable_number

logger = logging.getLogger(__name__)

# Decimals of common NEAR tokens, used before ft_metadata is consulted
KNOWN_DECIMALS = {
    "wrap.near": 24,
    "meta-pool.near": 24,
    "token.v2.ref-finance.near": 18,
    "usdt.tether-token.near": 6,
    "17208628f84f5d6ad33f0da3bbbeb27ffcb398eac501a31bd6ad2011e36133a1": 6,
    "dac17f958d2ee523a2206206994597c13d831ec7.factory.bridge.near": 6,
    "a0b86991c6218b36c1d19d4a2e9eb0ce3606eb48.factory.bridge.near": 6,
    "6b175474e89094c44da98b954eedeac495271d0f.factory.bridge.near": 18,
    "c02aaa39b223fe8d0a0e5c4f27ead9083c756cc2.factory.bridge.near": 18,
    "aaaaaa20d9e0e2461697782ef11675f668207961.factory.bridge.near": 18,
}

# Concurrent ft_metadata lookups when loading the pool universe
METADATA_CONCURRENCY = 16


class RpcError(Exception):
    """NEAR RPC returned an error payload."""

    pass


class RefPoolProvider(PoolDataProvider):
    """Pool provider backed by NEAR RPC view calls and the Ref indexer.

    The pool universe from `list_pools` is cached for `cache_ttl` seconds;
    token decimals are cached for the lifetime of the provider.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache_ttl: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ref pool provider.

        Args:
            settings: Endpoint settings (defaults to process settings)
            cache_ttl: Seconds a pool universe stays fresh
                (defaults to the refresh interval)
            transport: Optional httpx transport, e.g. a MockTransport
        """
        self.settings = settings or get_settings()
        self.rpc_url = self.settings.near_rpc_url
        self.indexer_url = self.settings.ref_indexer_url.rstrip("/")
        self.exchange_id = self.settings.ref_exchange_contract_id
        self.timeout = self.settings.http_timeout
        self.cache_ttl = (
            cache_ttl if cache_ttl is not None else float(self.settings.pool_token_refresh_interval)
        )
        self._transport = transport
        self._decimals: dict[str, int] = dict(KNOWN_DECIMALS)
        self._pools_cache: Optional[list[Pool]] = None
        self._pools_fetched_at = 0.0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def view(self, contract_id: str, method_name: str, args: Optional[dict] = None) -> Any:
        """Call a view method and decode its JSON result."""
        payload = {
            "jsonrpc": "2.0",
            "id": "refswap",
            "method": "query",
            "params": {
                "request_type": "call_function",
                "finality": "final",
                "account_id": contract_id,
                "method_name": method_name,
                "args_base64": base64.b64encode(json.dumps(args or {}).encode()).decode(),
            },
        }
        async with self._client() as client:
            response = await client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()

        if "error" in data:
            raise RpcError(f"{method_name} on {contract_id} failed: {data['error']}")
        result = data.get("result", {})
        if "error" in result:
            raise RpcError(f"{method_name} on {contract_id} failed: {result['error']}")
        return json.loads(bytes(result["result"]).decode())

    async def get_decimals(self, token_id: str) -> int:
        """Get token decimals, asking the token contract on a cache miss."""
        if token_id not in self._decimals:
            metadata = await self.view(token_id, "ft_metadata")
            self._decimals[token_id] = int(metadata["decimals"])
            logger.debug(f"Cached decimals for {token_id}: {self._decimals[token_id]}")
        return self._decimals[token_id]

    async def get_token(self, token_id: str) -> Token:
        """Build token metadata from the token contract's ft_metadata."""
        metadata = await self.view(token_id, "ft_metadata")
        self._decimals[token_id] = int(metadata["decimals"])
        return Token(id=token_id, symbol=metadata.get("symbol", token_id), decimals=int(metadata["decimals"]))

    async def _readable_amounts(self, token_ids: list[str], amounts: list) -> list[Decimal]:
        decimals = await asyncio.gather(*(self.get_decimals(t) for t in token_ids))
        return [to_readable_number(d, str(a)) for d, a in zip(decimals, amounts)]

    async def _parse_pool(self, pool_id: int, raw: dict) -> Pool:
        token_ids = raw["token_account_ids"]
        amounts = await self._readable_amounts(token_ids, raw["amounts"])
        kind = raw.get("pool_kind", SIMPLE_POOL)
        common = dict(
            id=int(pool_id),
            token_account_ids=token_ids,
            amounts=amounts,
            total_fee=int(raw["total_fee"]),
            shares_total_supply=Decimal(str(raw.get("shares_total_supply", "0"))),
        )
        if kind == STABLE_SWAP:
            amp = int(raw.get("amp") or 0)
            if amp <= 0:
                raise ValueError(f"Stable pool {pool_id} has no amplification coefficient")
            return StablePool(
                **common,
                amp=amp,
                decimals=[await self.get_decimals(t) for t in token_ids],
            )
        return Pool(**common, pool_kind=kind)

    async def get_pool(self, pool_id: int) -> Pool:
        raw = await self.view(self.exchange_id, "get_pool", {"pool_id": pool_id})
        return await self._parse_pool(pool_id, raw)

    async def get_stable_pool(self, pool_id: int) -> StablePool:
        raw = await self.view(self.exchange_id, "get_stable_pool", {"pool_id": pool_id})
        raw.setdefault("pool_kind", STABLE_SWAP)
        token_ids = raw["token_account_ids"]
        # get_stable_pool reports decimals itself
        for token_id, decimals in zip(token_ids, raw.get("decimals", [])):
            self._decimals.setdefault(token_id, int(decimals))
        pool = await self._parse_pool(pool_id, raw)
        logger.debug(f"Fetched stable pool {pool_id} (amp={raw.get('amp')})")
        return pool

    async def _prefetch_decimals(self, items: list[dict]) -> set[str]:
        """Look up decimals for every unknown token at once.

        Returns the token ids whose metadata could not be read.
        """
        unknown = sorted(
            {t for item in items for t in item.get("token_account_ids", []) if t not in self._decimals}
        )
        if not unknown:
            return set()

        semaphore = asyncio.Semaphore(METADATA_CONCURRENCY)

        async def fetch(token_id: str) -> int:
            async with semaphore:
                return await self.get_decimals(token_id)

        results = await asyncio.gather(*(fetch(t) for t in unknown), return_exceptions=True)
        failed = set()
        for token_id, result in zip(unknown, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.warning(f"No decimals for {token_id}: {type(result).__name__}: {result}")
                failed.add(token_id)
        logger.debug(f"Fetched decimals for {len(unknown) - len(failed)}/{len(unknown)} new tokens")
        return failed

    async def _load_pool(self, item: dict) -> Pool:
        pool_id = int(item["id"])
        if item.get("pool_kind") == STABLE_SWAP and not item.get("amp"):
            # The indexer omits the curve parameters of stable pools
            return await self.get_stable_pool(pool_id)
        return await self._parse_pool(pool_id, item)

    async def list_pools(self, refresh: bool = False) -> list[Pool]:
        age = time.monotonic() - self._pools_fetched_at
        if not refresh and self._pools_cache is not None and age < self.cache_ttl:
            return self._pools_cache

        async with self._client() as client:
            response = await client.get(f"{self.indexer_url}/list-pools")
            response.raise_for_status()
            items = response.json()

        live = [
            item for item in items
            if Decimal(str(item.get("shares_total_supply", "0"))) > 0
        ]
        failed_tokens = await self._prefetch_decimals(live)

        pools = []
        for item in live:
            if failed_tokens.intersection(item.get("token_account_ids", [])):
                logger.warning(f"Skipping pool {item.get('id')}: token metadata unavailable")
                continue
            try:
                pools.append(await self._load_pool(item))
            except (KeyError, ValueError, RpcError, httpx.HTTPError) as e:
                logger.warning(f"Skipping pool {item.get('id')}: {type(e).__name__}: {e}")

        self._pools_cache = pools
        self._pools_fetched_at = time.monotonic()
        logger.info(f"Loaded {len(pools)} pools from Ref indexer (refresh={refresh})")
        return pools
