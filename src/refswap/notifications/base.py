"""Notification sink interface and a logging implementation."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Receives one-shot swap outcome notifications."""

    @abstractmethod
    async def notify_swap_success(self, tx_hash: str) -> bool:
        pass

    @abstractmethod
    async def notify_swap_failure(self, tx_hash: str, reason: Optional[str] = None) -> bool:
        pass


class LogNotifier(NotificationSink):
    """Writes notifications to the log."""

    def __init__(self, explorer_url: str = "https://nearblocks.io/txns"):
        self.explorer_url = explorer_url.rstrip("/")

    async def notify_swap_success(self, tx_hash: str) -> bool:
        logger.info(f"Swap successful: {self.explorer_url}/{tx_hash}")
        return True

    async def notify_swap_failure(self, tx_hash: str, reason: Optional[str] = None) -> bool:
        logger.warning(f"Swap failed: {self.explorer_url}/{tx_hash} ({reason or 'unknown reason'})")
        return True
