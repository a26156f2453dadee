"""
Batched reads through Multicall3.

`try_all` splits a list of calls into chunks, sends every chunk concurrently as one
`tryAggregate(false, calls)` eth_call and stitches the results back together in input
order. A call that reverts (or returns undecodable data) yields None in its slot; only
transport failures escape.
"""

import asyncio
from typing import Any, List, Optional, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector

from ens_contracts import Call

MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"
TRY_AGGREGATE_SELECTOR = function_signature_to_4byte_selector(
    "tryAggregate(bool,(address,bytes)[])"
)
DEFAULT_CHUNK_SIZE = 500


def chunk_list(items: Sequence[Any], size: int) -> List[List[Any]]:
    """Split `items` into consecutive groups of at most `size` (no groups for empty input)."""
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def encode_try_aggregate(calls: Sequence[Call], require_success: bool = False) -> bytes:
    payload = encode(
        ["bool", "(address,bytes)[]"],
        [require_success, [(c.target, c.data) for c in calls]],
    )
    return TRY_AGGREGATE_SELECTOR + payload


def decode_try_aggregate(calls: Sequence[Call], raw: bytes) -> List[Optional[Any]]:
    (results,) = decode(["(bool,bytes)[]"], raw)
    if len(results) != len(calls):
        raise ValueError(
            f"Multicall returned {len(results)} results for {len(calls)} calls"
        )
    out: List[Optional[Any]] = []
    for call, (success, return_data) in zip(calls, results):
        if not success:
            out.append(None)
            continue
        try:
            out.append(call.decode(return_data))
        except DecodingError:
            # e.g. target has no code: the call "succeeds" with empty return data
            out.append(None)
    return out


async def try_aggregate(
    client: Any,
    calls: Sequence[Call],
    block: Optional[int] = None,
    multicall_address: str = MULTICALL3_ADDRESS,
) -> List[Optional[Any]]:
    raw = await client.eth_call(multicall_address, encode_try_aggregate(calls), block)
    return decode_try_aggregate(calls, raw)


async def try_all(
    client: Any,
    calls: Sequence[Call],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    block: Optional[int] = None,
    multicall_address: str = MULTICALL3_ADDRESS,
) -> List[Optional[Any]]:
    chunks = chunk_list(calls, chunk_size)
    results = await asyncio.gather(
        *[try_aggregate(client, chunk, block, multicall_address) for chunk in chunks]
    )
    return [item for chunk_result in results for item in chunk_result]


async def call_single(client: Any, call: Call, block: Optional[int] = None) -> Any:
    """Plain eth_call of one Call; reverts raise CallRevertedError, bad data DecodingError."""
    raw = await client.eth_call(call.target, call.data, block)
    return call.decode(raw)
