"""Telegram sink for swap outcomes.

Resolved swaps are reported to `NOTIFY_CHAT_ID` with a link to the
transaction on the explorer. All notifiers share one aiogram `Bot`, created
on first use from `TELEGRAM_BOT_TOKEN`; without a token the sink stays
silent and only logs.
"""

import asyncio
import logging
from typing import Optional

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError

from refswap.config import Settings, get_settings
from refswap.notifications.base import NotificationSink

logger = logging.getLogger(__name__)

_shared_bot: Optional[Bot] = None
_shared_bot_lock = asyncio.Lock()


async def get_bot(settings: Optional[Settings] = None) -> Optional[Bot]:
    """Shared outcome bot, or None when no token is configured."""
    global _shared_bot

    async with _shared_bot_lock:
        if _shared_bot is None:
            token = (settings or get_settings()).telegram_bot_token
            if not token:
                logger.warning("TELEGRAM_BOT_TOKEN not set, swap outcomes go to the log only")
                return None
            _shared_bot = Bot(token=token)
            logger.debug("Created shared Telegram bot for swap outcomes")
        return _shared_bot


async def close_bot() -> None:
    """Release the shared bot's HTTP session."""
    global _shared_bot
    bot, _shared_bot = _shared_bot, None
    if bot is not None:
        await bot.session.close()
        logger.debug("Closed shared Telegram bot")


def _short_hash(tx_hash: str) -> str:
    return f"{tx_hash[:8]}...{tx_hash[-8:]}" if len(tx_hash) > 20 else tx_hash


class TelegramNotifier(NotificationSink):
    """Sends swap outcomes to a Telegram chat."""

    def __init__(
        self,
        chat_id: Optional[int] = None,
        bot: Optional[Bot] = None,
        explorer_url: Optional[str] = None,
    ):
        """Initialize with optional bot instance.

        If no bot provided, will use the singleton instance.
        """
        settings = get_settings()
        self.chat_id = chat_id if chat_id is not None else settings.notify_chat_id
        self.explorer_url = (explorer_url or settings.explorer_url).rstrip("/")
        self._bot = bot

    async def _get_bot(self) -> Optional[Bot]:
        if self._bot:
            return self._bot
        return await get_bot()

    async def send_message(self, message: str, parse_mode: Optional[str] = "HTML") -> bool:
        """Send a message to the configured chat.

        Returns:
            True if message was sent successfully
        """
        if self.chat_id is None:
            logger.warning("Cannot send notification - no chat configured")
            return False

        bot = await self._get_bot()
        if not bot:
            logger.warning("Cannot send notification - bot not initialized")
            return False

        try:
            await bot.send_message(chat_id=self.chat_id, text=message, parse_mode=parse_mode)
            return True
        except TelegramForbiddenError:
            logger.warning(f"Chat {self.chat_id} has blocked the bot")
            return False
        except TelegramBadRequest as e:
            logger.error(f"Bad request sending to {self.chat_id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to send notification to {self.chat_id}: {e}")
            return False

    async def notify_swap_success(self, tx_hash: str) -> bool:
        message = (
            f"<b>Swap Successful</b>\n\n"
            f"TX: <a href=\"{self.explorer_url}/{tx_hash}\">{_short_hash(tx_hash)}</a>"
        )
        return await self.send_message(message)

    async def notify_swap_failure(self, tx_hash: str, reason: Optional[str] = None) -> bool:
        message = (
            f"<b>Swap Failed</b>\n\n"
            f"TX: <a href=\"{self.explorer_url}/{tx_hash}\">{_short_hash(tx_hash)}</a>\n"
        )
        if reason:
            message += f"Error: {reason}\n"
        return await self.send_message(message)
