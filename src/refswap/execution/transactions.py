"""Transaction submission and lookup.

Submission hands payloads to the wallet; the wallet redirects back with
the resulting hash in the callback URL.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from refswap.config import Settings, get_settings
from refswap.errors import ResolutionError, SubmissionError
from refswap.execution.actions import NearTransaction
from refswap.execution.borsh import encode_transactions

logger = logging.getLogger(__name__)


@dataclass
class PendingTransaction:
    """A submitted swap awaiting its outcome."""

    path: str
    tx_hash: Optional[str] = None
    redirect_url: Optional[str] = None
    transactions: list[NearTransaction] = field(default_factory=list)


@dataclass
class TransactionOutcome:
    """A finalized transaction as reported by the chain."""

    hash: str
    signer_id: str
    receiver_id: str
    actions: list[dict] = field(default_factory=list)
    succeeded: bool = True
    failure: Optional[str] = None

    def method_name(self, index: int) -> Optional[str]:
        """Function-call method name of an action, if it is a function call."""
        if index >= len(self.actions):
            return None
        call = self.actions[index].get("FunctionCall")
        if not isinstance(call, dict):
            return None
        return call.get("method_name")

    @classmethod
    def from_rpc(cls, result: dict) -> "TransactionOutcome":
        """Build from a NEAR RPC `tx` result."""
        transaction = result.get("transaction", {})
        status = result.get("status", {})
        failure = status.get("Failure") if isinstance(status, dict) else None
        return cls(
            hash=transaction.get("hash", ""),
            signer_id=transaction.get("signer_id", ""),
            receiver_id=transaction.get("receiver_id", ""),
            actions=[a for a in transaction.get("actions", []) if isinstance(a, dict)],
            succeeded=failure is None,
            failure=json.dumps(failure) if failure is not None else None,
        )


class TransactionService(ABC):
    """Submits swap transactions and looks up their outcome."""

    @abstractmethod
    async def submit(self, transactions: list[NearTransaction], callback_path: str) -> PendingTransaction:
        """Hand transactions to the signer.

        Raises:
            SubmissionError: if the transactions cannot be submitted
        """
        pass

    @abstractmethod
    async def check_transaction(self, tx_hash: str) -> TransactionOutcome:
        """Fetch a finalized transaction.

        Raises:
            ResolutionError: if the lookup fails
        """
        pass


class NearTransactionService(TransactionService):
    """Wallet-redirect submission plus NEAR RPC lookups.

    Transactions are borsh-encoded against the signer key's current nonce
    and the latest final block, then handed to the wallet's `/sign` page.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.rpc_url = self.settings.near_rpc_url
        self.wallet_url = self.settings.wallet_url.rstrip("/")
        self.app_url = self.settings.app_url.rstrip("/")
        self.account_id = self.settings.account_id
        self.public_key = self.settings.public_key
        self._transport = transport

    async def _signing_context(self) -> tuple[int, str]:
        """Current access key nonce and final block hash."""
        access_key = await self._rpc(
            "query",
            {
                "request_type": "view_access_key",
                "finality": "final",
                "account_id": self.account_id,
                "public_key": self.public_key,
            },
        )
        block = await self._rpc("block", {"finality": "final"})
        return int(access_key["nonce"]), block["header"]["hash"]

    async def submit(self, transactions: list[NearTransaction], callback_path: str) -> PendingTransaction:
        if not transactions:
            raise SubmissionError("Nothing to submit")
        if not self.account_id:
            raise SubmissionError("No signer account configured")
        if not self.public_key:
            raise SubmissionError("No signer public key configured")

        try:
            nonce, block_hash = await self._signing_context()
            encoded = encode_transactions(
                transactions, self.account_id, self.public_key, nonce, block_hash
            )
        except (ResolutionError, httpx.HTTPError, KeyError, ValueError) as e:
            raise SubmissionError("Could not prepare transactions for signing", cause=e)

        query = urlencode(
            {
                "transactions": encoded,
                "callbackUrl": f"{self.app_url}{callback_path}",
            }
        )
        redirect_url = f"{self.wallet_url}/sign?{query}"
        logger.info(
            f"Prepared {len(transactions)} transaction(s) for wallet signing (nonce {nonce + 1})"
        )
        return PendingTransaction(
            path=callback_path,
            redirect_url=redirect_url,
            transactions=list(transactions),
        )

    async def _rpc(self, method: str, params: Any) -> dict:
        payload = {"jsonrpc": "2.0", "id": "refswap", "method": method, "params": params}
        async with httpx.AsyncClient(timeout=self.settings.http_timeout, transport=self._transport) as client:
            response = await client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        if "error" in data:
            raise ResolutionError(f"RPC {method} failed: {data['error']}")
        return data["result"]

    async def check_transaction(self, tx_hash: str) -> TransactionOutcome:
        try:
            result = await self._rpc(
                "tx",
                {
                    "tx_hash": tx_hash,
                    "sender_account_id": self.account_id,
                    "wait_until": "FINAL",
                },
            )
        except ResolutionError:
            raise
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise ResolutionError(f"Lookup of {tx_hash} failed", cause=e)
        return TransactionOutcome.from_rpc(result)
