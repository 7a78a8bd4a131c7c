"""NEAR transaction payloads for Ref exchange swaps.

These models describe unsigned function calls; the wallet signs and
broadcasts them.
"""

import json
from typing import Any, Optional

from pydantic import BaseModel, Field

ONE_YOCTO_NEAR = "1"
DEFAULT_GAS = "180000000000000"
WRAP_GAS = "50000000000000"


class FunctionCallAction(BaseModel):
    """A single FunctionCall action."""

    method_name: str = Field(..., description="Contract method to call")
    args: dict[str, Any] = Field(default_factory=dict, description="JSON arguments")
    gas: str = Field(default=DEFAULT_GAS, description="Attached gas")
    deposit: str = Field(default=ONE_YOCTO_NEAR, description="Attached deposit in yoctoNEAR")


class NearTransaction(BaseModel):
    """An unsigned transaction: ordered function calls on one receiver."""

    receiver_id: str = Field(..., description="Contract receiving the calls")
    function_calls: list[FunctionCallAction] = Field(default_factory=list)
    description: Optional[str] = Field(None, description="Human-readable description")


def swap_action(
    pool_id: int,
    token_in: str,
    token_out: str,
    min_amount_out: int,
    amount_in: Optional[int] = None,
) -> dict:
    """One entry of the exchange's `actions` list.

    Chained hops leave amount_in out so the exchange feeds them the
    previous hop's output.
    """
    action = {
        "pool_id": pool_id,
        "token_in": token_in,
        "token_out": token_out,
        "min_amount_out": str(min_amount_out),
    }
    if amount_in is not None:
        action["amount_in"] = str(amount_in)
    return action


def ft_transfer_call(
    token_id: str,
    exchange_id: str,
    amount: int,
    actions: list[dict],
) -> NearTransaction:
    """Transfer token_in to the exchange with the swap actions as the message."""
    msg = json.dumps({"force": 0, "actions": actions}, separators=(",", ":"))
    return NearTransaction(
        receiver_id=token_id,
        function_calls=[
            FunctionCallAction(
                method_name="ft_transfer_call",
                args={"receiver_id": exchange_id, "amount": str(amount), "msg": msg},
            )
        ],
        description=f"Swap via {len(actions)} action(s) on {exchange_id}",
    )


def near_deposit(wrap_id: str, amount: int) -> NearTransaction:
    """Wrap native NEAR before swapping it."""
    return NearTransaction(
        receiver_id=wrap_id,
        function_calls=[
            FunctionCallAction(method_name="near_deposit", gas=WRAP_GAS, deposit=str(amount))
        ],
        description="Wrap NEAR",
    )


def near_withdraw(wrap_id: str, amount: int) -> NearTransaction:
    """Unwrap wNEAR received from a swap."""
    return NearTransaction(
        receiver_id=wrap_id,
        function_calls=[
            FunctionCallAction(
                method_name="near_withdraw",
                args={"amount": str(amount)},
                gas=WRAP_GAS,
            )
        ],
        description="Unwrap NEAR",
    )
