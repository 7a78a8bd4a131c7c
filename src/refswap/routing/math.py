"""Pool output formulas.

Constant-product math mirrors the Ref exchange contract (fees in basis
points over a divisor of 10000). Stable pools use the StableSwap
invariant with Newton iteration for D and y.
"""

from decimal import Decimal, localcontext
from typing import Sequence

from refswap.pools.models import Pool

FEE_DIVISOR = Decimal(10000)

_MAX_ITERATIONS = 256
_PRECISION = 50
_TOLERANCE = Decimal("1e-24")


def constant_product_out(
    amount_in: Decimal,
    reserve_in: Decimal,
    reserve_out: Decimal,
    fee: int,
) -> Decimal:
    """Output of a constant-product swap with the fee taken from the input."""
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return Decimal("0")
    amount_with_fee = amount_in * (FEE_DIVISOR - fee)
    return amount_with_fee * reserve_out / (FEE_DIVISOR * reserve_in + amount_with_fee)


def stable_invariant(amp: int, amounts: Sequence[Decimal]) -> Decimal:
    """Compute D for the given balances."""
    n = len(amounts)
    total = sum(amounts, Decimal(0))
    if total == 0:
        return Decimal(0)
    if any(x <= 0 for x in amounts):
        raise ValueError("Stable pool balances must be positive")

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ann = Decimal(amp * n)
        d = total
        for _ in range(_MAX_ITERATIONS):
            d_p = d
            for x in amounts:
                d_p = d_p * d / (x * n)
            d_prev = d
            d = (ann * total + d_p * n) * d / ((ann - 1) * d + (n + 1) * d_p)
            if abs(d - d_prev) <= _TOLERANCE:
                break
        return +d


def stable_out_balance(
    amp: int,
    amounts: Sequence[Decimal],
    index_in: int,
    index_out: int,
    new_balance_in: Decimal,
) -> Decimal:
    """Solve for the output-token balance that keeps D constant."""
    n = len(amounts)
    d = stable_invariant(amp, amounts)

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ann = Decimal(amp * n)
        c = d
        s = Decimal(0)
        for i, balance in enumerate(amounts):
            if i == index_out:
                continue
            x = new_balance_in if i == index_in else balance
            s += x
            c = c * d / (x * n)
        c = c * d / (ann * n)
        b = s + d / ann

        y = d
        for _ in range(_MAX_ITERATIONS):
            y_prev = y
            y = (y * y + c) / (2 * y + b - d)
            if abs(y - y_prev) <= _TOLERANCE:
                break
        return +y


def stable_swap_out(
    amp: int,
    amounts: Sequence[Decimal],
    index_in: int,
    index_out: int,
    amount_in: Decimal,
    fee: int,
) -> tuple[Decimal, Decimal]:
    """Return (amount_out after fee, dy before fee) for a stable swap."""
    if amount_in <= 0:
        return Decimal("0"), Decimal("0")
    y = stable_out_balance(amp, amounts, index_in, index_out, amounts[index_in] + amount_in)
    dy = amounts[index_out] - y
    if dy <= 0:
        return Decimal("0"), Decimal("0")
    return dy - dy * fee / FEE_DIVISOR, dy


def average_fee_for_routes(
    routes: Sequence[Sequence[Pool]],
    route_inputs: Sequence[Decimal],
    total_input: Decimal,
) -> Decimal:
    """Input-weighted mean of per-route fees (a route's fee is the sum of its pools)."""
    if total_input <= 0:
        return Decimal("0")
    weighted = sum(
        (Decimal(sum(pool.fee for pool in route)) * amount for route, amount in zip(routes, route_inputs)),
        Decimal(0),
    )
    return weighted / total_input
