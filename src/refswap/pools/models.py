"""Token and pool snapshots."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

SIMPLE_POOL = "SIMPLE_POOL"
STABLE_SWAP = "STABLE_SWAP"


@dataclass(frozen=True)
class Token:
    """Fungible token metadata supplied by the caller."""

    id: str
    symbol: str
    decimals: int


@dataclass
class Pool:
    """A read-only pool snapshot.

    `amounts` holds readable reserves aligned with `token_account_ids`;
    `total_fee` is in basis points.
    """

    id: int
    token_account_ids: list[str]
    amounts: list[Decimal]
    total_fee: int
    pool_kind: str = SIMPLE_POOL
    shares_total_supply: Decimal = Decimal("0")

    @property
    def fee(self) -> int:
        return self.total_fee

    @property
    def is_stable(self) -> bool:
        return self.pool_kind == STABLE_SWAP

    def has_tokens(self, *token_ids: str) -> bool:
        return all(t in self.token_account_ids for t in token_ids)

    def reserve(self, token_id: str) -> Decimal:
        """Readable reserve of one token in the pool."""
        return self.amounts[self.token_account_ids.index(token_id)]

    def other_tokens(self, token_id: str) -> list[str]:
        return [t for t in self.token_account_ids if t != token_id]


@dataclass
class StablePool(Pool):
    """Stable-swap pool: amplified curve over pegged tokens."""

    pool_kind: str = STABLE_SWAP
    amp: int = 0
    decimals: list[int] = field(default_factory=list)

    def token_decimals(self, token_id: str) -> Optional[int]:
        if not self.decimals:
            return None
        return self.decimals[self.token_account_ids.index(token_id)]
