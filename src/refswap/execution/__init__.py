"""Swap execution: transaction building, submission and outcome resolution."""

from refswap.execution.actions import FunctionCallAction, NearTransaction
from refswap.execution.dry_run import DryRunTransactionService
from refswap.execution.resolver import SWAP_METHOD_NAMES, TransactionOutcomeResolver, is_swap_transaction
from refswap.execution.submitter import ExecutionSubmitter
from refswap.execution.transactions import (
    NearTransactionService,
    PendingTransaction,
    TransactionOutcome,
    TransactionService,
)

__all__ = [
    "FunctionCallAction",
    "NearTransaction",
    "DryRunTransactionService",
    "ExecutionSubmitter",
    "NearTransactionService",
    "PendingTransaction",
    "SWAP_METHOD_NAMES",
    "TransactionOutcome",
    "TransactionOutcomeResolver",
    "TransactionService",
    "is_swap_transaction",
]
