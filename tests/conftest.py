"""Shared fixtures: an in-memory JSON-RPC node and ABI-encoded log builders."""

from typing import Any, Sequence

import pytest
from eth_abi import encode

from perpscan.adapters.contract_binding import BoundContract
from perpscan.application.service import PerpsService
from perpscan.domain.abi import (
    ACCOUNT_CREATED, MARKET_UPDATED, ORDER_COMMITTED, ORDER_SETTLED, POSITION_LIQUIDATED, FunctionABI,
)
from perpscan.domain.models import EventLog
from perpscan.domain.value_types import Address, Topic0
from perpscan.exceptions import JSONRPCError

CORE = Address("0x" + "c0" * 20)
SPOT = Address("0x" + "5b" * 20)
PERPS = Address("0x" + "9e" * 20)
PERPS_FIRST_BLOCK = 100

SETTLER = "0x" + "ab" * 20
TRACKING = "0x" + "00" * 31 + "07"


def word(n: int) -> str:
    return "0x" + n.to_bytes(32, "big").hex()


def addr_topic(address: str) -> str:
    return "0x" + "00" * 12 + address[2:].lower()


def tx(block: int, idx: int) -> str:
    return "0x" + f"{block:032x}{idx:032x}"


def make_log(topics: Sequence[str], data: bytes, block: int, log_index: int, address: str = PERPS) -> EventLog:
    return EventLog(
        address=Address(address),
        topics=tuple(topics),
        data_hex="0x" + data.hex(),
        block_number=block,
        tx_hash=tx(block, log_index),
        log_index=log_index,
    )


def trade_log(block: int, log_index: int = 0, *, market_id: int = 100, account_id: int = 7,
              fill_price: int = 2_000 * 10**18, pnl: int = -5 * 10**18, size_delta: int = -10**18) -> EventLog:
    data = encode(
        list(ORDER_SETTLED.data_types),
        [fill_price, pnl, 3, size_delta, 2 * 10**18, 11, 1, 10, 5, SETTLER],
    )
    return make_log([ORDER_SETTLED.topic0, word(market_id), word(account_id), TRACKING], data, block, log_index)


def order_log(block: int, log_index: int = 0, *, market_id: int = 100, account_id: int = 7) -> EventLog:
    data = encode(list(ORDER_COMMITTED.data_types), [0, 5 * 10**17, 1_900 * 10**18, 1_700_000_010, 1_700_000_100, SETTLER])
    return make_log([ORDER_COMMITTED.topic0, word(market_id), word(account_id), TRACKING], data, block, log_index)


def market_update_log(block: int, log_index: int = 0, *, market_id: int = 200) -> EventLog:
    data = encode(list(MARKET_UPDATED.data_types), [market_id, 30_000 * 10**18, -4 * 10**18, 9 * 10**18, 10**18, -10**15, 10**12])
    return make_log([MARKET_UPDATED.topic0], data, block, log_index)


def liquidation_log(block: int, log_index: int = 0, *, account_id: int = 7, market_id: int = 100) -> EventLog:
    data = encode(list(POSITION_LIQUIDATED.data_types), [3 * 10**18, -2 * 10**18])
    return make_log([POSITION_LIQUIDATED.topic0, word(account_id), word(market_id)], data, block, log_index)


def account_created_log(block: int, log_index: int = 0, *, account_id: int = 7, owner: str = SETTLER) -> EventLog:
    return make_log([ACCOUNT_CREATED.topic0, word(account_id), addr_topic(owner)], b"", block, log_index)


class FakeRPC:
    """In-memory node: serves logs by (address, topic0, range) and canned eth_call results.

    fail_get_logs_on: 1-based index of the eth_getLogs call that raises.
    """

    def __init__(self, head: int = 1_000, logs: Sequence[EventLog] = ()) -> None:
        self.head = head
        self.logs = list(logs)
        self.calls: dict[bytes, bytes] = {}
        self.timestamps: dict[int, int] = {}
        self.get_logs_calls: list[tuple[str, tuple[str, ...], int, int | None]] = []
        self.eth_calls: list[tuple[str, bytes]] = []
        self.fail_latest_block: Exception | None = None
        self.fail_get_logs_on: int | None = None
        self.fail_get_logs_with: Exception = JSONRPCError("eth_getLogs", -32005, "query returned more than 10000 results")
        self.fail_timestamp: Exception | None = None
        self.fail_call: Exception | None = None
        self.closed = False

    def stub_call(self, fn: FunctionABI, args: Sequence[Any], result: Sequence[Any]) -> None:
        data = fn.selector + encode(list(fn.input_types), list(args))
        self.calls[data] = encode(list(fn.output_types), list(result))

    async def latest_block(self) -> int:
        if self.fail_latest_block is not None:
            raise self.fail_latest_block
        return self.head

    async def get_logs(self, address: Address, topic0s: Sequence[Topic0], from_block: int,
                       to_block: int | None) -> list[EventLog]:
        self.get_logs_calls.append((address, tuple(topic0s), from_block, to_block))
        if self.fail_get_logs_on is not None and len(self.get_logs_calls) == self.fail_get_logs_on:
            raise self.fail_get_logs_with
        end = self.head if to_block is None else to_block
        return sorted(
            (lg for lg in self.logs
             if lg.address == address and lg.topic0 in topic0s and from_block <= lg.block_number <= end),
            key=lambda lg: lg.ordering_key,
        )

    async def call(self, to: Address, data: bytes, block: int | str = "latest") -> bytes:
        self.eth_calls.append((to, data))
        if self.fail_call is not None:
            raise self.fail_call
        if data not in self.calls:
            raise JSONRPCError("eth_call", 3, "execution reverted")
        return self.calls[data]

    async def block_timestamp(self, block_number: int) -> int:
        if self.fail_timestamp is not None:
            raise self.fail_timestamp
        return self.timestamps.get(block_number, 1_700_000_000 + block_number * 2)

    async def aclose(self) -> None:
        self.closed = True

    def chunk_bounds(self) -> list[tuple[int, int | None]]:
        return [(c[2], c[3]) for c in self.get_logs_calls]


@pytest.fixture
def rpc() -> FakeRPC:
    return FakeRPC()


@pytest.fixture
def perps_market(rpc: FakeRPC) -> BoundContract:
    return BoundContract("perps_market", PERPS, PERPS_FIRST_BLOCK, rpc)


@pytest.fixture
def service(rpc: FakeRPC) -> PerpsService:
    return PerpsService(
        rpc,
        BoundContract("core", CORE, 10, rpc),
        BoundContract("spot_market", SPOT, 50, rpc),
        BoundContract("perps_market", PERPS, PERPS_FIRST_BLOCK, rpc),
    )
