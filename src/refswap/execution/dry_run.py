"""Dry-run transaction service for simulated swaps."""

import hashlib
import logging
from typing import Optional

from refswap.errors import ResolutionError, SubmissionError
from refswap.execution.actions import NearTransaction
from refswap.execution.transactions import PendingTransaction, TransactionOutcome, TransactionService

logger = logging.getLogger(__name__)


class DryRunTransactionService(TransactionService):
    """Records submissions and serves them back as finalized transactions.

    Hashes are derived from the payload, so identical submissions get
    identical hashes.
    """

    def __init__(self, signer_id: str = "dry-run.near", fail_with: Optional[str] = None):
        self.signer_id = signer_id
        self.fail_with = fail_with
        self.submitted: list[PendingTransaction] = []
        self._outcomes: dict[str, TransactionOutcome] = {}

    async def submit(self, transactions: list[NearTransaction], callback_path: str) -> PendingTransaction:
        if self.fail_with:
            raise SubmissionError(self.fail_with)
        if not transactions:
            raise SubmissionError("Nothing to submit")

        payload = "".join(tx.model_dump_json() for tx in transactions)
        tx_hash = hashlib.sha256(payload.encode()).hexdigest()

        last = transactions[-1]
        self._outcomes[tx_hash] = TransactionOutcome(
            hash=tx_hash,
            signer_id=self.signer_id,
            receiver_id=last.receiver_id,
            actions=[
                {"FunctionCall": call.model_dump()}
                for tx in transactions
                for call in tx.function_calls
            ],
        )

        pending = PendingTransaction(path=callback_path, tx_hash=tx_hash, transactions=list(transactions))
        self.submitted.append(pending)
        logger.info(f"[DRY RUN] Recorded {len(transactions)} transaction(s) as {tx_hash[:12]}...")
        return pending

    def record(self, outcome: TransactionOutcome) -> None:
        """Register an outcome to be returned by check_transaction."""
        self._outcomes[outcome.hash] = outcome

    async def check_transaction(self, tx_hash: str) -> TransactionOutcome:
        try:
            return self._outcomes[tx_hash]
        except KeyError:
            raise ResolutionError(f"Unknown transaction {tx_hash}")
