from __future__ import annotations
import itertools
from typing import Any, Sequence

import httpx

from ..domain.models import EventLog
from ..domain.value_types import Address, Topic0
from ..exceptions import JSONRPCError
from ..ports.rpc import RPCClient

def _to_hex_block(n: int | None) -> str: return "latest" if n is None else hex(int(n))
def _is_topic_hash(x: str) -> bool: return isinstance(x, str) and x.startswith("0x") and len(x)==66
def _normalize_topic0_list(t0s: Sequence[Topic0]) -> list[str]:
    return [str(t).strip().lower() for t in t0s]

def _build_topics_param(topic0s: Sequence[Topic0]) -> list[list[str]]:
    t0s = _normalize_topic0_list(topic0s)
    if not all(_is_topic_hash(x) for x in t0s):
        raise ValueError(f"Invalid topic0(s): {t0s}")
    return [t0s]

def _hex_int(v: Any) -> int:
    if v is None or isinstance(v, bool): raise TypeError(f"expected a hex quantity, got {v!r}")
    if isinstance(v, int): return v
    s = str(v)
    return int(s, 16) if s.startswith("0x") else int(s)

def _to_event_log(rl: dict[str, Any]) -> EventLog:
    return EventLog(
        address=Address(rl["address"].lower()),
        topics=tuple(t.lower() for t in rl.get("topics", [])),
        data_hex=str(rl.get("data") or "0x"),
        block_number=_hex_int(rl["blockNumber"]),
        tx_hash=rl["transactionHash"].lower(),
        log_index=_hex_int(rl["logIndex"]),
    )


class HttpxRPC(RPCClient):
    """Async JSON-RPC client over httpx.

    Errors are not retried here: node-side errors and malformed payloads raise
    JSONRPCError, transport failures surface as httpx.HTTPError.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 20,
        max_conn: int = 64,
        http2: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._ids = itertools.count(1)
        self.client = httpx.AsyncClient(
            http2=http2 and transport is None,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max(1, max_conn//2)),
            transport=transport,
        )

    async def _request(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc":"2.0","id":next(self._ids),"method":method,"params":params}
        r = await self.client.post(self.rpc_url, json=payload)
        r.raise_for_status()
        try:
            data = r.json()
        except ValueError as e:
            raise JSONRPCError(method, None, f"invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise JSONRPCError(method, None, f"unexpected response: {data!r}")
        if "error" in data:
            err = data["error"]
            if isinstance(err, dict):
                raise JSONRPCError(method, err.get("code"), str(err.get("message")))
            raise JSONRPCError(method, None, str(err))
        if "result" not in data:
            raise JSONRPCError(method, None, "response has no result")
        return data["result"]

    async def latest_block(self) -> int:
        res = await self._request("eth_blockNumber", [])
        try:
            return _hex_int(res)
        except (TypeError, ValueError) as e:
            raise JSONRPCError("eth_blockNumber", None, f"malformed result: {res!r}") from e

    async def get_logs(self, address: Address, topic0s: Sequence[Topic0], from_block: int, to_block: int | None) -> list[EventLog]:
        res = await self._request("eth_getLogs", [{
            "address": str(address).lower(),
            "fromBlock": _to_hex_block(from_block),
            "toBlock": _to_hex_block(to_block),
            "topics": _build_topics_param(topic0s),
        }])
        try:
            logs = [_to_event_log(rl) for rl in (res or [])]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise JSONRPCError("eth_getLogs", None, f"malformed log entry: {e}") from e
        # providers already return logs in chain order; sort anyway so every chunk is ordered
        return sorted(logs, key=lambda lg: lg.ordering_key)

    async def call(self, to: Address, data: bytes, block: int | str = "latest") -> bytes:
        tag = block if isinstance(block, str) else _to_hex_block(block)
        res = await self._request("eth_call", [{"to": str(to), "data": "0x" + data.hex()}, tag])
        try:
            h = res[2:] if res[:2].lower() == "0x" else res
            return bytes.fromhex(h)
        except (TypeError, ValueError) as e:
            raise JSONRPCError("eth_call", None, f"malformed result: {res!r}") from e

    async def block_timestamp(self, block_number: int) -> int:
        block = await self._request("eth_getBlockByNumber", [_to_hex_block(block_number), False])
        if not block:
            raise JSONRPCError("eth_getBlockByNumber", None, f"block {block_number} not found")
        try:
            return _hex_int(block["timestamp"])
        except (KeyError, TypeError, ValueError) as e:
            raise JSONRPCError("eth_getBlockByNumber", None, f"malformed block header: {e!r}") from e

    async def aclose(self) -> None:
        await self.client.aclose()
