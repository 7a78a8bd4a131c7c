"""Quote runner.

Keeps a swap quote fresh against live Ref Finance pools and logs it, or
resolves the outcome of a swap from a wallet callback URL.

Usage:
    python -m refswap.runner --token-in wrap.near --token-out usdt.tether-token.near --amount 1
    python -m refswap.runner --resolve-url "https://app.ref.finance/?transactionHashes=..."

Environment variables:
    NEAR_RPC_URL: NEAR JSON-RPC endpoint
    ACCOUNT_ID, PUBLIC_KEY: Signer account and its ed25519 access key
    POOL_TOKEN_REFRESH_INTERVAL: Seconds between refreshes (default: 10)
    DEFAULT_SLIPPAGE: Slippage tolerance in percent (default: 0.5)
"""

import argparse
import asyncio
import logging
from typing import Optional

from refswap.config import SessionConfig, Settings, get_settings
from refswap.execution.resolver import TransactionOutcomeResolver
from refswap.execution.submitter import ExecutionSubmitter
from refswap.execution.transactions import NearTransactionService
from refswap.navigation import UrlNavigationContext
from refswap.notifications.base import LogNotifier, NotificationSink
from refswap.pools.ref_finance import RefPoolProvider
from refswap.routing.search import RouteSearchService
from refswap.session.stable_session import StableSwapSession
from refswap.session.swap_session import SwapSession

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_notifier(settings: Settings) -> NotificationSink:
    """Telegram when a bot and chat are configured, the log otherwise."""
    if settings.telegram_bot_token and settings.notify_chat_id is not None:
        from refswap.notifications.telegram import TelegramNotifier

        return TelegramNotifier(chat_id=settings.notify_chat_id)
    return LogNotifier(settings.explorer_url)


class QuoteRunner:
    """Runs one quote session and reports its quotes."""

    def __init__(
        self,
        token_in: str,
        token_out: str,
        amount: str,
        slippage: Optional[float] = None,
        stable: bool = False,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.token_in_id = token_in
        self.token_out_id = token_out
        self.amount = amount
        self.slippage = slippage
        self.stable = stable

        self.config = SessionConfig.from_settings(self.settings)
        self.provider = RefPoolProvider(self.settings)
        self.search = RouteSearchService(self.provider, config=self.config)
        self.submitter = ExecutionSubmitter(NearTransactionService(self.settings), self.settings)

    async def create_session(self):
        token_in = await self.provider.get_token(self.token_in_id)
        token_out = await self.provider.get_token(self.token_out_id)
        session_cls = StableSwapSession if self.stable else SwapSession
        return session_cls(
            self.search,
            self.submitter,
            self.config,
            token_in=token_in,
            token_out=token_out,
            amount_in=self.amount,
            slippage_tolerance=self.slippage,
        )

    def report(self, session) -> None:
        if session.error is not None:
            logger.warning(f"No quote: {session.error}")
            return
        if session.token_out_amount is None:
            logger.info("No quote yet")
            return
        logger.info(
            f"{session.amount_in} {session.token_in.symbol} -> {session.token_out_amount} "
            f"{session.token_out.symbol} (min {session.min_amount_out}, can_swap={session.can_swap})"
        )

    async def run_once(self) -> None:
        session = await self.create_session()
        try:
            await session.estimate()
            self.report(session)
        finally:
            await session.close()

    async def run(self) -> None:
        """Report quotes every refresh interval until cancelled."""
        logger.info(
            f"Starting quote session {self.amount} {self.token_in_id} -> {self.token_out_id} "
            f"(interval: {self.config.refresh_interval}s)"
        )
        async with await self.create_session() as session:
            while True:
                self.report(session)
                await asyncio.sleep(self.config.refresh_interval)


async def resolve_url(url: str, settings: Settings) -> Optional[bool]:
    """Resolve the swap referenced by a wallet callback URL."""
    notifier = create_notifier(settings)
    resolver = TransactionOutcomeResolver(
        NearTransactionService(settings),
        notifier,
        UrlNavigationContext(url),
    )
    try:
        is_swap = await resolver.resolve()
    finally:
        if not isinstance(notifier, LogNotifier):
            from refswap.notifications.telegram import close_bot

            await close_bot()
    logger.info(f"Resolved {url}: swap={is_swap}, navigation -> {resolver.navigation.pathname}")
    return is_swap


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run a Ref Finance quote session")
    parser.add_argument("--token-in", default="wrap.near", help="Input token id")
    parser.add_argument("--token-out", default="usdt.tether-token.near", help="Output token id")
    parser.add_argument("--amount", default="1", help="Input amount in token units")
    parser.add_argument("--slippage", type=float, default=None, help="Slippage tolerance in percent")
    parser.add_argument("--stable", action="store_true", help="Quote on the stable pool only")
    parser.add_argument("--once", action="store_true", help="Print one quote and exit")
    parser.add_argument("--resolve-url", default=None, help="Resolve a wallet callback URL and exit")

    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings)

    if args.resolve_url:
        await resolve_url(args.resolve_url, settings)
        return

    runner = QuoteRunner(
        token_in=args.token_in,
        token_out=args.token_out,
        amount=args.amount,
        slippage=args.slippage,
        stable=args.stable,
        settings=settings,
    )

    if args.once:
        await runner.run_once()
    else:
        await runner.run()


if __name__ == "__main__":
    asyncio.run(main())
