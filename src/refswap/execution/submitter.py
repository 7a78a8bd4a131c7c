"""Turns accepted quotes into Ref exchange transactions and submits them."""

import logging
from decimal import Decimal
from itertools import groupby
from typing import Optional

from refswap.config import Settings, get_settings
from refswap.errors import SubmissionError, SwapEngineError
from refswap.execution.actions import (
    FunctionCallAction,
    NearTransaction,
    ft_transfer_call,
    near_deposit,
    near_withdraw,
    swap_action,
)
from refswap.execution.transactions import PendingTransaction, TransactionService
from refswap.pools.models import StablePool, Token
from refswap.routing.base import RouteLeg
from refswap.utils.numbers import Amount, is_effectively_zero, percent_less, to_decimal, to_non_divisible_number

logger = logging.getLogger(__name__)


class ExecutionSubmitter:
    """Builds swap transactions for a route and hands them to the signer.

    With `use_near_balance` the input is taken from the wallet
    (ft_transfer_call, wrapping/unwrapping native NEAR as needed);
    otherwise it is taken from the account's deposit on the exchange
    (a direct `swap` call).
    """

    def __init__(
        self,
        transactions: TransactionService,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.transactions = transactions
        self.exchange_id = settings.ref_exchange_contract_id
        self.wrap_near_id = settings.wrap_near_contract_id

    def route_actions(
        self,
        swaps_to_do: list[RouteLeg],
        token_in: Token,
        token_out: Token,
        amount_units: int,
        slippage_tolerance: Amount,
    ) -> tuple[list[dict], int]:
        """Exchange actions for a route plus the total minimum output in base units."""
        routes = [list(legs) for _, legs in groupby(swaps_to_do, key=lambda leg: leg.route_index)]
        total_in = sum((route[0].pool_amount_in or Decimal(0) for route in routes), Decimal(0))

        actions = []
        min_total = 0
        allocated = 0
        for index, route in enumerate(routes):
            first, last = route[0], route[-1]
            if first.input_token != token_in.id or last.output_token != token_out.id:
                raise SubmissionError(
                    f"Route {index} does not connect {token_in.symbol} to {token_out.symbol}"
                )

            if index == len(routes) - 1:
                route_units = amount_units - allocated
            elif total_in > 0:
                route_units = int(amount_units * first.pool_amount_in / total_in)
            else:
                route_units = 0
            allocated += route_units

            route_min = to_non_divisible_number(
                token_out.decimals, percent_less(slippage_tolerance, last.estimate)
            )
            min_total += route_min

            for position, leg in enumerate(route):
                actions.append(
                    swap_action(
                        pool_id=leg.pool.id,
                        token_in=leg.input_token,
                        token_out=leg.output_token,
                        min_amount_out=route_min if leg is last else 0,
                        amount_in=route_units if position == 0 else None,
                    )
                )
        return actions, min_total

    def _wrap_transactions(
        self,
        token_in: Token,
        token_out: Token,
        amount_units: int,
        min_out_units: int,
        actions: list[dict],
        use_near_balance: bool,
    ) -> list[NearTransaction]:
        transactions = []
        if use_near_balance:
            if token_in.id == self.wrap_near_id:
                transactions.append(near_deposit(self.wrap_near_id, amount_units))
            transactions.append(ft_transfer_call(token_in.id, self.exchange_id, amount_units, actions))
            if token_out.id == self.wrap_near_id:
                transactions.append(near_withdraw(self.wrap_near_id, min_out_units))
        else:
            transactions.append(
                NearTransaction(
                    receiver_id=self.exchange_id,
                    function_calls=[FunctionCallAction(method_name="swap", args={"actions": actions})],
                    description="Swap from exchange deposit",
                )
            )
        return transactions

    def build_swap_transactions(
        self,
        swaps_to_do: Optional[list[RouteLeg]],
        token_in: Token,
        token_out: Token,
        amount_in: Amount,
        slippage_tolerance: Amount,
        use_near_balance: bool = True,
    ) -> list[NearTransaction]:
        if not swaps_to_do:
            raise SubmissionError("No route to execute")
        if is_effectively_zero(amount_in):
            raise SubmissionError("Swap amount must be positive")

        amount_units = to_non_divisible_number(token_in.decimals, amount_in)
        actions, min_out = self.route_actions(
            swaps_to_do, token_in, token_out, amount_units, slippage_tolerance
        )
        return self._wrap_transactions(
            token_in, token_out, amount_units, min_out, actions, use_near_balance
        )

    async def _submit(self, transactions: list[NearTransaction], callback_path: str) -> PendingTransaction:
        try:
            return await self.transactions.submit(transactions, callback_path)
        except SwapEngineError:
            raise
        except Exception as e:
            logger.error(f"Swap submission failed: {type(e).__name__}: {e}")
            raise SubmissionError("Failed to submit swap", cause=e)

    async def swap(
        self,
        *,
        swaps_to_do: Optional[list[RouteLeg]],
        token_in: Token,
        token_out: Token,
        amount_in: Amount,
        slippage_tolerance: Amount,
        use_near_balance: bool = True,
        callback_path: str = "/",
    ) -> PendingTransaction:
        """
        Submit a routed swap.

        Args:
            swaps_to_do: Route legs from the accepted quote
            token_in: Input token
            token_out: Output token
            amount_in: Readable input amount
            slippage_tolerance: Slippage in percent
            use_near_balance: Pay from the wallet rather than the exchange deposit
            callback_path: Page the wallet returns to

        Returns:
            PendingTransaction for outcome resolution

        Raises:
            SubmissionError: on an invalid route or a rejected submission
        """
        transactions = self.build_swap_transactions(
            swaps_to_do, token_in, token_out, amount_in, slippage_tolerance, use_near_balance
        )
        logger.info(
            f"Submitting swap {amount_in} {token_in.symbol} -> {token_out.symbol} "
            f"({len(swaps_to_do)} leg(s), slippage {slippage_tolerance}%)"
        )
        return await self._submit(transactions, callback_path)

    async def stable_swap(
        self,
        *,
        pool: Optional[StablePool],
        token_in: Token,
        token_out: Token,
        amount_in: Amount,
        min_amount_out: Optional[Amount],
        use_near_balance: bool = True,
        callback_path: str = "/",
    ) -> PendingTransaction:
        """Submit a single-hop swap on a stable pool."""
        if pool is None:
            raise SubmissionError("No stable pool quoted")
        if is_effectively_zero(amount_in):
            raise SubmissionError("Swap amount must be positive")
        if min_amount_out is None:
            raise SubmissionError("No minimum output quoted")

        amount_units = to_non_divisible_number(token_in.decimals, amount_in)
        min_out = to_non_divisible_number(token_out.decimals, to_decimal(min_amount_out))
        actions = [
            swap_action(
                pool_id=pool.id,
                token_in=token_in.id,
                token_out=token_out.id,
                min_amount_out=min_out,
                amount_in=amount_units,
            )
        ]
        transactions = self._wrap_transactions(
            token_in, token_out, amount_units, min_out, actions, use_near_balance
        )
        logger.info(f"Submitting stable swap {amount_in} {token_in.symbol} -> {token_out.symbol} on pool {pool.id}")
        return await self._submit(transactions, callback_path)
