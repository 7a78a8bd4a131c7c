"""Pytest configuration and fixtures."""

import os
from decimal import Decimal

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["ACCOUNT_ID"] = "alice.near"
os.environ["DEBUG"] = "true"

from refswap.config import SessionConfig
from refswap.execution.dry_run import DryRunTransactionService
from refswap.execution.submitter import ExecutionSubmitter
from refswap.pools.models import Pool, StablePool, Token
from refswap.pools.static import StaticPoolProvider
from refswap.routing.base import PoolMode, RouteEstimate, RouteLeg
from refswap.routing.search import RouteSearchService

USDC_ID = "17208628f84f5d6ad33f0da3bbbeb27ffcb398eac501a31bd6ad2011e36133a1"
DAI_ID = "6b175474e89094c44da98b954eedeac495271d0f.factory.bridge.near"


@pytest.fixture
def near():
    return Token(id="wrap.near", symbol="wNEAR", decimals=24)


@pytest.fixture
def usdt():
    return Token(id="usdt.tether-token.near", symbol="USDT", decimals=6)


@pytest.fixture
def usdc():
    return Token(id=USDC_ID, symbol="USDC", decimals=6)


@pytest.fixture
def dai():
    return Token(id=DAI_ID, symbol="DAI", decimals=18)


@pytest.fixture
def ref():
    return Token(id="token.v2.ref-finance.near", symbol="REF", decimals=18)


@pytest.fixture
def aurora():
    """Token that no fixture pool trades."""
    return Token(id="aaaaaa20d9e0e2461697782ef11675f668207961.factory.bridge.near", symbol="AURORA", decimals=18)


@pytest.fixture
def near_usdt_pool(near, usdt):
    return Pool(
        id=1,
        token_account_ids=[near.id, usdt.id],
        amounts=[Decimal("1000"), Decimal("5000")],
        total_fee=30,
    )


@pytest.fixture
def near_ref_pool(near, ref):
    return Pool(
        id=2,
        token_account_ids=[near.id, ref.id],
        amounts=[Decimal("1000"), Decimal("10000")],
        total_fee=30,
    )


@pytest.fixture
def ref_usdt_pool(ref, usdt):
    return Pool(
        id=3,
        token_account_ids=[ref.id, usdt.id],
        amounts=[Decimal("10000"), Decimal("5000")],
        total_fee=30,
    )


@pytest.fixture
def stable_pool(usdt, usdc, dai):
    return StablePool(
        id=10,
        token_account_ids=[usdt.id, usdc.id, dai.id],
        amounts=[Decimal("1000000"), Decimal("1000000"), Decimal("1000000")],
        total_fee=5,
        amp=240,
        decimals=[6, 6, 18],
    )


@pytest.fixture
def session_config(usdt, usdc, dai):
    """Session config with the timer disabled; tests drive refreshes."""
    return SessionConfig(
        refresh_interval=0,
        default_slippage=Decimal("0.5"),
        stable_pool_ids=frozenset({10}),
        stable_token_ids=frozenset({usdt.id, usdc.id, dai.id}),
    )


@pytest.fixture
def provider(near_usdt_pool, near_ref_pool, ref_usdt_pool, stable_pool):
    return StaticPoolProvider([near_usdt_pool, near_ref_pool, ref_usdt_pool, stable_pool])


@pytest.fixture
def search(provider, session_config):
    return RouteSearchService(provider, config=session_config)


@pytest.fixture
def dry_run():
    return DryRunTransactionService(signer_id="alice.near")


@pytest.fixture
def submitter(dry_run):
    return ExecutionSubmitter(dry_run)


@pytest.fixture
def make_estimate(near_usdt_pool, near, usdt):
    """Build a one-leg estimate with a chosen output."""

    def _make(amount_out, amount_in=Decimal("1"), pool=None):
        pool = pool or near_usdt_pool
        leg = RouteLeg(
            pool=pool,
            status=PoolMode.PARALLEL,
            input_token=near.id,
            output_token=usdt.id,
            pool_amount_in=Decimal(amount_in),
            estimate=Decimal(amount_out),
            total_input_amount=Decimal(amount_in),
            all_routes=[[pool]],
            all_node_routes=[[near.id, usdt.id]],
            route_inputs=[Decimal(amount_in)],
        )
        return RouteEstimate(
            mode=PoolMode.PARALLEL,
            legs=[leg],
            amount_in=Decimal(amount_in),
            amount_out=Decimal(amount_out),
            average_fee=Decimal(pool.fee),
        )

    return _make
