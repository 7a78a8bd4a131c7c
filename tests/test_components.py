"""Component tests for refswap modules.

Tests amounts, configuration, errors, notifications, the Ref pool
provider and the runner wiring.
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from refswap.config import SessionConfig, Settings, get_settings
from refswap.errors import ErrorKind, EstimationError, ResolutionError, SubmissionError
from refswap.utils.numbers import (
    format_amount,
    is_effectively_zero,
    percent_less,
    to_decimal,
    to_non_divisible_number,
    to_readable_number,
)

USDC_ID = "17208628f84f5d6ad33f0da3bbbeb27ffcb398eac501a31bd6ad2011e36133a1"


def _view_result(payload) -> dict:
    """NEAR RPC call_function response carrying a JSON payload."""
    return {
        "jsonrpc": "2.0",
        "id": "refswap",
        "result": {"result": list(json.dumps(payload).encode()), "logs": []},
    }


class TestNumbers:
    """Tests for amount helpers."""

    def test_effectively_zero(self):
        """Test blank and zero-only amounts."""
        for amount in (None, "", "  ", "0", "000", "0.", ".0", "0.000", 0, Decimal("0")):
            assert is_effectively_zero(amount), amount
        for amount in ("1", "0.01", "10", 5, Decimal("0.1")):
            assert not is_effectively_zero(amount), amount

    def test_to_decimal_rejects_garbage(self):
        """Test invalid amounts raise ValueError."""
        assert to_decimal(" 1.5 ") == Decimal("1.5")
        with pytest.raises(ValueError):
            to_decimal("1.2.3")

    def test_percent_less(self):
        """Test slippage reduction and clamping."""
        assert percent_less("0.5", "200") == Decimal("199")
        assert percent_less("0", "200") == Decimal("200")
        assert percent_less("150", "200") == Decimal("0")
        assert percent_less("-1", "200") == Decimal("200")

    def test_unit_conversion(self):
        """Test readable and base unit conversion."""
        assert to_non_divisible_number(24, "1.5") == 1500000000000000000000000
        assert to_non_divisible_number(6, "0.1234567") == 123456
        assert to_readable_number(6, "5000000") == Decimal("5")

    def test_format_amount(self):
        """Test display formatting."""
        assert format_amount(Decimal("3500.0")) == "3,500"
        assert format_amount(Decimal("0.12345678912"), places=4) == "0.1235"


class TestConfig:
    """Tests for configuration module."""

    def test_get_settings(self):
        """Test getting settings instance."""
        settings = get_settings()

        assert settings.environment == "test"
        assert settings.ref_exchange_contract_id == "v2.ref-finance.near"
        assert settings.pool_token_refresh_interval == 10

    def test_settings_safe_dict(self):
        """Test that secrets are redacted."""
        settings = Settings(telegram_bot_token="123:secret")
        safe = settings.get_safe_dict()

        assert safe["telegram_bot_token"] == "***"
        assert "123:secret" not in json.dumps(safe)

    def test_stable_token_ids_parsed(self):
        """Test comma-separated stable token ids."""
        settings = Settings(stable_token_ids=f"usdt.tether-token.near, {USDC_ID},")

        assert settings.stable_token_id_set == frozenset({"usdt.tether-token.near", USDC_ID})

    def test_session_config_from_settings(self):
        """Test session config mirrors settings."""
        settings = Settings(pool_token_refresh_interval=30, default_slippage=1.0, stable_pool_id=42)

        config = SessionConfig.from_settings(settings)

        assert config.refresh_interval == 30.0
        assert config.default_slippage == Decimal("1.0")
        assert config.stable_pool_ids == frozenset({42})
        assert "usdt.tether-token.near" in config.stable_token_ids


class TestErrors:
    """Tests for error kinds."""

    def test_error_kinds(self):
        """Test each error carries its kind."""
        assert EstimationError("x").kind == ErrorKind.ESTIMATION
        assert SubmissionError("x").kind == ErrorKind.SUBMISSION
        assert ResolutionError("x").kind == ErrorKind.RESOLUTION

    def test_message_falls_back_to_cause(self):
        """Test an error without message describes its cause."""
        error = EstimationError(cause=ValueError("bad reserve"))

        assert str(error) == "ValueError: bad reserve"
        assert str(EstimationError("No route", cause=ValueError("x"))) == "No route"


class TestNotifications:
    """Tests for the notifications module."""

    @pytest.mark.asyncio
    async def test_notifier_swap_success_message(self):
        """Test swap success message formatting."""
        from refswap.notifications.telegram import TelegramNotifier

        mock_bot = AsyncMock()
        mock_bot.send_message = AsyncMock(return_value=True)

        notifier = TelegramNotifier(chat_id=123456789, bot=mock_bot, explorer_url="https://nearblocks.io/txns")

        result = await notifier.notify_swap_success("9uLnJ6AbpDz4RyLqZ3Fe2gN7xV5cT1wK8hM4sP0oQ")

        assert result is True
        mock_bot.send_message.assert_called_once()

        call_args = mock_bot.send_message.call_args
        message = call_args.kwargs.get("text")
        assert call_args.kwargs.get("chat_id") == 123456789
        assert "Swap Successful" in message
        assert "https://nearblocks.io/txns/9uLnJ6AbpDz4RyLqZ3Fe2gN7xV5cT1wK8hM4sP0oQ" in message
        assert "9uLnJ6Ab...hM4sP0oQ" in message

    @pytest.mark.asyncio
    async def test_notifier_swap_failure_message(self):
        """Test swap failure message includes the reason."""
        from refswap.notifications.telegram import TelegramNotifier

        mock_bot = AsyncMock()
        mock_bot.send_message = AsyncMock(return_value=True)

        notifier = TelegramNotifier(chat_id=1, bot=mock_bot)

        result = await notifier.notify_swap_failure("abc123", "E68: slippage error")

        assert result is True
        message = mock_bot.send_message.call_args.kwargs.get("text")
        assert "Swap Failed" in message
        assert "E68: slippage error" in message

    @pytest.mark.asyncio
    async def test_notifier_handles_blocked_chat(self):
        """Test that notifier handles a chat that blocked the bot."""
        from aiogram.exceptions import TelegramForbiddenError
        from refswap.notifications.telegram import TelegramNotifier

        mock_bot = AsyncMock()
        mock_bot.send_message = AsyncMock(
            side_effect=TelegramForbiddenError(
                method=MagicMock(),
                message="Forbidden: bot was blocked by the user"
            )
        )

        notifier = TelegramNotifier(chat_id=123456789, bot=mock_bot)

        result = await notifier.send_message("Test message")

        assert result is False

    @pytest.mark.asyncio
    async def test_notifier_no_bot_configured(self):
        """Test that notifier handles missing bot gracefully."""
        from refswap.notifications.telegram import TelegramNotifier

        notifier = TelegramNotifier(chat_id=123456789, bot=None)

        with patch("refswap.notifications.telegram.get_bot", return_value=None):
            result = await notifier.send_message("Test message")

        assert result is False

    @pytest.mark.asyncio
    async def test_notifier_no_chat_configured(self):
        """Test that notifier without a chat sends nothing."""
        from refswap.notifications.telegram import TelegramNotifier

        mock_bot = AsyncMock()
        notifier = TelegramNotifier(bot=mock_bot)

        assert await notifier.notify_swap_success("abc") is False
        mock_bot.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_bot_without_token(self):
        """Test no bot is created without a token."""
        from refswap.notifications.telegram import get_bot

        assert await get_bot() is None

    @pytest.mark.asyncio
    async def test_shared_bot_reused_until_closed(self):
        """Test notifiers share one bot until it is closed."""
        from refswap.notifications import telegram

        settings = Settings(telegram_bot_token="123456:ABC-token")

        first = await telegram.get_bot(settings)
        assert first is not None
        assert await telegram.get_bot(settings) is first

        await telegram.close_bot()
        assert telegram._shared_bot is None

    @pytest.mark.asyncio
    async def test_log_notifier(self, caplog):
        """Test log notifier writes the explorer link."""
        from refswap.notifications.base import LogNotifier

        notifier = LogNotifier("https://explorer.test/txns/")

        with caplog.at_level("INFO", logger="refswap.notifications.base"):
            assert await notifier.notify_swap_success("abc") is True

        assert "https://explorer.test/txns/abc" in caplog.text


class TestRefPoolProvider:
    """Tests for the RPC/indexer backed pool provider."""

    @pytest.fixture
    def settings(self):
        return Settings(near_rpc_url="https://rpc.test", ref_indexer_url="https://indexer.test/")

    @pytest.mark.asyncio
    async def test_list_pools_parses_and_caches(self, settings):
        """Test pool listing, filtering and caching."""
        from refswap.pools.ref_finance import RefPoolProvider

        calls = {"indexer": 0, "rpc": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/list-pools":
                calls["indexer"] += 1
                return httpx.Response(
                    200,
                    json=[
                        {
                            "id": "1",
                            "pool_kind": "SIMPLE_POOL",
                            "token_account_ids": ["wrap.near", "usdt.tether-token.near"],
                            "amounts": ["1000000000000000000000000000", "5000000000"],
                            "total_fee": 30,
                            "shares_total_supply": "100",
                        },
                        {
                            "id": "2",
                            "token_account_ids": ["wrap.near", "usdt.tether-token.near"],
                            "amounts": ["0", "0"],
                            "total_fee": 30,
                            "shares_total_supply": "0",
                        },
                        {
                            "id": "3",
                            "token_account_ids": ["wrap.near", "mystery.near"],
                            "amounts": ["1", "1"],
                            "total_fee": 30,
                            "shares_total_supply": "5",
                        },
                    ],
                )
            calls["rpc"] += 1
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": "refswap", "error": {"name": "HANDLER_ERROR"}})

        provider = RefPoolProvider(settings, cache_ttl=60, transport=httpx.MockTransport(handler))

        pools = await provider.list_pools()

        assert [pool.id for pool in pools] == [1]
        assert pools[0].amounts == [Decimal("1000"), Decimal("5000")]
        assert pools[0].fee == 30
        # mystery.near has no cached decimals, its ft_metadata call failed
        assert calls["rpc"] == 1

        await provider.list_pools()
        assert calls["indexer"] == 1

        await provider.list_pools(refresh=True)
        assert calls["indexer"] == 2

    @pytest.mark.asyncio
    async def test_get_stable_pool(self, settings):
        """Test stable pool view call decoding."""
        from refswap.pools.models import StablePool
        from refswap.pools.ref_finance import RefPoolProvider

        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.append(body["params"])
            return httpx.Response(
                200,
                json=_view_result(
                    {
                        "token_account_ids": ["usdt.tether-token.near", USDC_ID],
                        "decimals": [6, 6],
                        "amounts": ["2000000000000", "1000000000000"],
                        "total_fee": 5,
                        "shares_total_supply": "1",
                        "amp": 240,
                    }
                ),
            )

        provider = RefPoolProvider(settings, transport=httpx.MockTransport(handler))

        pool = await provider.get_stable_pool(1910)

        assert isinstance(pool, StablePool)
        assert pool.id == 1910
        assert pool.amp == 240
        assert pool.amounts == [Decimal("2000000"), Decimal("1000000")]
        assert pool.token_decimals(USDC_ID) == 6
        assert seen[0]["method_name"] == "get_stable_pool"
        assert seen[0]["account_id"] == "v2.ref-finance.near"

    @pytest.mark.asyncio
    async def test_list_pools_loads_stable_curve(self, settings):
        """Test stable items from the indexer get their amp from the exchange."""
        from refswap.pools.models import StablePool
        from refswap.pools.ref_finance import RefPoolProvider
        from refswap.routing.base import PoolMode
        from refswap.routing.estimator import RouteEstimator

        views = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/list-pools":
                return httpx.Response(
                    200,
                    json=[
                        {
                            "id": "1910",
                            "pool_kind": "STABLE_SWAP",
                            "token_account_ids": ["usdt.tether-token.near", USDC_ID],
                            "amounts": ["1000000000000", "1000000000000"],
                            "total_fee": 5,
                            "shares_total_supply": "1",
                        },
                    ],
                )
            body = json.loads(request.content)
            views.append(body["params"]["method_name"])
            return httpx.Response(
                200,
                json=_view_result(
                    {
                        "token_account_ids": ["usdt.tether-token.near", USDC_ID],
                        "decimals": [6, 6],
                        "amounts": ["1000000000000", "1000000000000"],
                        "total_fee": 5,
                        "shares_total_supply": "1",
                        "amp": 240,
                    }
                ),
            )

        provider = RefPoolProvider(settings, transport=httpx.MockTransport(handler))

        pools = await provider.list_pools()

        assert views == ["get_stable_pool"]
        assert isinstance(pools[0], StablePool)
        assert pools[0].amp == 240

        estimate = RouteEstimator(stable_pool_ids={1910}).estimate(
            "usdt.tether-token.near", USDC_ID, "100", pools
        )
        assert estimate.mode == PoolMode.STABLE
        assert Decimal("99.9") < estimate.amount_out < Decimal("100")

    @pytest.mark.asyncio
    async def test_stable_pool_without_amp_rejected(self, settings):
        """Test a stable pool with no amplification coefficient is not built."""
        from refswap.pools.ref_finance import RefPoolProvider

        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                200,
                json=_view_result(
                    {
                        "token_account_ids": ["usdt.tether-token.near", USDC_ID],
                        "decimals": [6, 6],
                        "amounts": ["1", "1"],
                        "total_fee": 5,
                        "shares_total_supply": "1",
                    }
                ),
            )
        )
        provider = RefPoolProvider(settings, transport=transport)

        with pytest.raises(ValueError, match="amplification"):
            await provider.get_stable_pool(1910)

    @pytest.mark.asyncio
    async def test_list_pools_fetches_each_unknown_token_once(self, settings):
        """Test decimals for new tokens are looked up once before parsing."""
        from refswap.pools.ref_finance import RefPoolProvider

        metadata_calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/list-pools":
                return httpx.Response(
                    200,
                    json=[
                        {
                            "id": str(pool_id),
                            "token_account_ids": token_ids,
                            "amounts": ["1000", "1000"],
                            "total_fee": 30,
                            "shares_total_supply": "1",
                        }
                        for pool_id, token_ids in [
                            (1, ["wrap.near", "alpha.near"]),
                            (2, ["alpha.near", "beta.near"]),
                            (3, ["beta.near", "wrap.near"]),
                        ]
                    ],
                )
            body = json.loads(request.content)
            metadata_calls.append(body["params"]["account_id"])
            return httpx.Response(200, json=_view_result({"symbol": "X", "decimals": 3}))

        provider = RefPoolProvider(settings, transport=httpx.MockTransport(handler))

        pools = await provider.list_pools()

        assert sorted(metadata_calls) == ["alpha.near", "beta.near"]
        assert [pool.id for pool in pools] == [1, 2, 3]
        assert pools[1].amounts == [Decimal("1"), Decimal("1")]

    @pytest.mark.asyncio
    async def test_get_token(self, settings):
        """Test token metadata lookup."""
        from refswap.pools.ref_finance import RefPoolProvider

        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json=_view_result({"symbol": "REF", "decimals": 18}))
        )
        provider = RefPoolProvider(settings, transport=transport)

        token = await provider.get_token("token.v2.ref-finance.near")

        assert token.symbol == "REF"
        assert token.decimals == 18

    @pytest.mark.asyncio
    async def test_view_error(self, settings):
        """Test contract errors in the RPC result are raised."""
        from refswap.pools.ref_finance import RefPoolProvider, RpcError

        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"result": {"error": "wasm execution failed"}})
        )
        provider = RefPoolProvider(settings, transport=transport)

        with pytest.raises(RpcError):
            await provider.get_pool(1)


class TestRunner:
    """Tests for runner wiring."""

    def test_create_notifier_defaults_to_log(self):
        """Test the log notifier is used without Telegram settings."""
        from refswap.notifications.base import LogNotifier
        from refswap.runner import create_notifier

        assert isinstance(create_notifier(Settings(telegram_bot_token="")), LogNotifier)

    def test_create_notifier_telegram(self):
        """Test Telegram is used when a bot and chat are configured."""
        from refswap.notifications.telegram import TelegramNotifier
        from refswap.runner import create_notifier

        notifier = create_notifier(Settings(telegram_bot_token="123:abc", notify_chat_id=42))

        assert isinstance(notifier, TelegramNotifier)
        assert notifier.chat_id == 42

    @pytest.mark.asyncio
    async def test_run_once_reports_quote(self, provider, session_config, near, usdt):
        """Test a one-shot quote against a static provider."""
        from refswap.routing.search import RouteSearchService
        from refswap.runner import QuoteRunner

        runner = QuoteRunner(near.id, usdt.id, "1", settings=Settings())
        runner.provider = provider
        runner.search = RouteSearchService(provider, config=session_config)
        runner.provider.get_token = AsyncMock(side_effect=[near, usdt])
        runner.report = MagicMock()

        await runner.run_once()

        session = runner.report.call_args.args[0]
        assert session.can_swap
        assert session.closed

    @pytest.mark.asyncio
    async def test_resolve_url_without_hash(self):
        """Test resolving a URL with no transaction hash."""
        from refswap.runner import resolve_url

        assert await resolve_url("https://app.ref.finance/swap", Settings()) is None

    @pytest.mark.asyncio
    async def test_resolve_url_releases_telegram_bot(self):
        """Test the shared bot is closed once a callback URL is resolved."""
        from refswap.runner import resolve_url

        settings = Settings(telegram_bot_token="123:abc", notify_chat_id=42)

        with patch("refswap.notifications.telegram.close_bot", new_callable=AsyncMock) as close_bot:
            assert await resolve_url("https://app.ref.finance/swap", settings) is None

        close_bot.assert_awaited_once()
