"""Borsh encoding of unsigned NEAR transactions.

Wallets take `transactions=` as comma-separated base64 of these bytes.
Layout: https://nomicon.io/DataStructures/Transaction
"""

import base64
import json

import base58

from refswap.execution.actions import FunctionCallAction, NearTransaction

ED25519_PREFIX = "ed25519:"
FUNCTION_CALL_ACTION = 2


def _u32(value: int) -> bytes:
    return value.to_bytes(4, "little")


def _string(value: str) -> bytes:
    data = value.encode()
    return _u32(len(data)) + data


def decode_public_key(public_key: str) -> bytes:
    """Raw 32 bytes of an `ed25519:<base58>` key."""
    if not public_key.startswith(ED25519_PREFIX):
        raise ValueError(f"Unsupported key type: {public_key.split(':')[0]}")
    raw = base58.b58decode(public_key[len(ED25519_PREFIX):])
    if len(raw) != 32:
        raise ValueError(f"ed25519 key must be 32 bytes, got {len(raw)}")
    return raw


def serialize_function_call(action: FunctionCallAction) -> bytes:
    """Serialize a FunctionCall action."""
    args = json.dumps(action.args, separators=(",", ":")).encode()
    return (
        FUNCTION_CALL_ACTION.to_bytes(1, "little")
        + _string(action.method_name)
        + _u32(len(args))
        + args
        + int(action.gas).to_bytes(8, "little")
        + int(action.deposit).to_bytes(16, "little")
    )


def serialize_transaction(
    transaction: NearTransaction,
    signer_id: str,
    public_key: bytes,
    nonce: int,
    block_hash: bytes,
) -> bytes:
    """Serialize an unsigned transaction."""
    result = _string(signer_id)
    # Key type 0 is ed25519
    result += (0).to_bytes(1, "little") + public_key
    result += nonce.to_bytes(8, "little")
    result += _string(transaction.receiver_id)
    result += block_hash
    result += _u32(len(transaction.function_calls))
    for action in transaction.function_calls:
        result += serialize_function_call(action)
    return result


def encode_transactions(
    transactions: list[NearTransaction],
    signer_id: str,
    public_key: str,
    access_key_nonce: int,
    block_hash: str,
) -> str:
    """Wallet `transactions` parameter; nonces follow the access key's."""
    key = decode_public_key(public_key)
    block = base58.b58decode(block_hash)
    return ",".join(
        base64.b64encode(
            serialize_transaction(tx, signer_id, key, access_key_nonce + index + 1, block)
        ).decode()
        for index, tx in enumerate(transactions)
    )
