"""
Async JSON-RPC client used for all chain reads.

- One aiohttp session shared by every request.
- A sliding-window limiter caps request starts per second, a semaphore caps in-flight requests.
- Node-side execution errors (reverts) are raised as CallRevertedError so callers can
  tell them apart from transport failures (RpcTransportError), which are fatal.
"""

import asyncio
import json
from collections import deque
from time import monotonic
from typing import Any, List, Optional, Union

import aiohttp


class RpcTransportError(RuntimeError):
    """Endpoint unreachable, bad HTTP status or malformed JSON-RPC response."""


class CallRevertedError(RuntimeError):
    """The node answered with a JSON-RPC error object (e.g. execution reverted)."""

    def __init__(self, method: str, error: Any):
        self.method = method
        self.error = error
        super().__init__(f"RPC error for {method}: {error}")


def to_hex_block(n: int) -> str:
    return hex(int(n))


def block_tag(block: Optional[int]) -> str:
    return to_hex_block(block) if block is not None else "latest"


# =====================
# Rate limiter
# =====================


class SlidingWindowLimiter:
    """Allows at most `rate_per_sec` request starts in any one-second window."""

    def __init__(self, rate_per_sec: int, window: float = 1.0):
        self.rate = max(1, rate_per_sec)
        self.window = window
        self._starts: deque = deque()
        self._lock = asyncio.Lock()

    def _expire(self, now: float) -> None:
        while self._starts and now - self._starts[0] >= self.window:
            self._starts.popleft()

    async def acquire(self) -> None:
        while True:
            async with self._lock:
                now = monotonic()
                self._expire(now)
                if len(self._starts) < self.rate:
                    self._starts.append(now)
                    return
                # full window: sleep until its first slot frees up
                delay = self.window - (now - self._starts[0])
            await asyncio.sleep(max(delay, 0.001))


# =====================
# RPC client
# =====================


class RpcClient:
    def __init__(
        self,
        url: str,
        session: aiohttp.ClientSession,
        concurrency: int = 8,
        rate_per_sec: int = 50,
        timeout: float = 60.0,
    ):
        self.url = url
        self.session = session
        self.semaphore = asyncio.Semaphore(concurrency)
        self.limiter = SlidingWindowLimiter(rate_per_sec)
        self.timeout = timeout
        self._id = 0

    async def _rpc(self, method: str, params: List[Any]) -> Any:
        async with self.semaphore:
            await self.limiter.acquire()
            self._id += 1
            payload = {
                "jsonrpc": "2.0",
                "id": self._id,
                "method": method,
                "params": params,
            }
            try:
                async with self.session.post(
                    self.url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status != 200:
                        raise RpcTransportError(f"HTTP {resp.status} for {method}")
                    data = await resp.json(loads=json.loads, content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                raise RpcTransportError(f"{method} failed: {exc}") from exc
        if not isinstance(data, dict):
            raise RpcTransportError(f"Malformed response for {method}: {data!r}")
        if data.get("error") is not None:
            raise CallRevertedError(method, data["error"])
        if "result" not in data:
            raise RpcTransportError(f"Missing result for {method}")
        return data["result"]

    async def eth_blockNumber(self) -> int:
        res = await self._rpc("eth_blockNumber", [])
        return int(res, 16)

    async def eth_chainId(self) -> int:
        res = await self._rpc("eth_chainId", [])
        return int(res, 16)

    async def eth_call(
        self, to: str, data: Union[bytes, str], block: Optional[int] = None
    ) -> bytes:
        data_hex = data if isinstance(data, str) else "0x" + data.hex()
        res = await self._rpc("eth_call", [{"to": to, "data": data_hex}, block_tag(block)])
        if not isinstance(res, str) or not res.startswith("0x"):
            raise RpcTransportError(f"Malformed eth_call result: {res!r}")
        try:
            return bytes.fromhex(res[2:])
        except ValueError as exc:
            raise RpcTransportError(f"Malformed eth_call result: {res!r}") from exc
