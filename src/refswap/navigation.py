"""Navigation context read after the wallet redirects back."""

import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import parse_qs, urlsplit

logger = logging.getLogger(__name__)


class NavigationContext(ABC):
    """Current page location as seen by the outcome resolver."""

    @property
    @abstractmethod
    def tx_hash(self) -> Optional[str]:
        pass

    @property
    @abstractmethod
    def pathname(self) -> str:
        pass

    @property
    @abstractmethod
    def error_code(self) -> Optional[str]:
        pass

    @abstractmethod
    def replace(self, path: str) -> None:
        """Replace the current entry without adding history."""
        pass


class UrlNavigationContext(NavigationContext):
    """Navigation context backed by a URL string.

    The wallet appends `transactionHashes` (comma separated, last one is
    the swap) and, on rejection, `errorCode`.
    """

    def __init__(self, url: str):
        self.url = url
        self.history: list[str] = [url]

    def _query(self) -> dict[str, list[str]]:
        return parse_qs(urlsplit(self.url).query)

    @property
    def tx_hash(self) -> Optional[str]:
        hashes = self._query().get("transactionHashes")
        if not hashes:
            return None
        last = hashes[-1].split(",")[-1].strip()
        return last or None

    @property
    def pathname(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def error_code(self) -> Optional[str]:
        codes = self._query().get("errorCode")
        return codes[0] if codes else None

    def replace(self, path: str) -> None:
        parts = urlsplit(self.url)
        base = f"{parts.scheme}://{parts.netloc}" if parts.netloc else ""
        self.url = f"{base}{path}"
        self.history[-1] = self.url
        logger.debug(f"Navigation replaced with {self.url}")
