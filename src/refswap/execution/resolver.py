"""Reports the outcome of a swap once the wallet redirects back."""

import logging
from typing import Optional

from refswap.errors import ResolutionError
from refswap.execution.transactions import TransactionOutcome, TransactionService
from refswap.navigation import NavigationContext
from refswap.notifications.base import NotificationSink

logger = logging.getLogger(__name__)

SWAP_METHOD_NAMES = frozenset({"ft_transfer_call", "swap", "near_withdraw"})


def is_swap_transaction(outcome: TransactionOutcome) -> bool:
    """A swap calls one of the swap methods in its first or second action."""
    return any(outcome.method_name(index) in SWAP_METHOD_NAMES for index in (0, 1))


class TransactionOutcomeResolver:
    """Checks the transaction referenced by the navigation context once.

    Each distinct hash is handled at most once; lookup failures are
    logged and otherwise ignored.
    """

    def __init__(
        self,
        transactions: TransactionService,
        notifier: NotificationSink,
        navigation: NavigationContext,
    ):
        self.transactions = transactions
        self.notifier = notifier
        self.navigation = navigation
        self._handled: set[str] = set()

    async def resolve(self) -> Optional[bool]:
        """
        Inspect the pending transaction, notify and clean up navigation.

        Returns:
            True/False whether the transaction was a swap, or None when
            there was nothing to resolve or the lookup failed
        """
        tx_hash = self.navigation.tx_hash
        if not tx_hash or tx_hash in self._handled:
            return None
        self._handled.add(tx_hash)

        pathname = self.navigation.pathname
        error_code = self.navigation.error_code

        try:
            outcome = await self.transactions.check_transaction(tx_hash)
        except ResolutionError as e:
            logger.warning(f"Could not resolve transaction {tx_hash}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Could not resolve transaction {tx_hash}: {type(e).__name__}: {e}")
            return None

        is_swap = is_swap_transaction(outcome)
        if is_swap and not error_code:
            if outcome.succeeded:
                await self.notifier.notify_swap_success(tx_hash)
            else:
                await self.notifier.notify_swap_failure(tx_hash, outcome.failure)
        elif is_swap:
            logger.info(f"Swap {tx_hash} returned with error code {error_code}, not notifying")

        self.navigation.replace(pathname)
        return is_swap
