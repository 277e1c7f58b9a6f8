from __future__ import annotations
import asyncio
import json
from dataclasses import dataclass, field
from typing import Iterator

from ..exceptions import BlockRangeError
from .value_types import Address, EventKind


@dataclass(slots=True, frozen=True)
class BlockRange:
    start: int
    end: int
    def span(self) -> int: return self.end - self.start + 1


@dataclass(slots=True, frozen=True)
class BlockSpan:
    """Logical request range; to_block=None means "up to the chain head"."""
    from_block: int = 0
    to_block: int | None = None

    def __post_init__(self) -> None:
        if self.from_block < 0 or (self.to_block is not None and self.to_block < 0):
            raise BlockRangeError(f"negative block in span [{self.from_block}, {self.to_block}]")
        if self.to_block is not None and self.from_block > self.to_block:
            raise BlockRangeError(f"from_block ({self.from_block}) must be <= to_block ({self.to_block})")

    @property
    def bounded(self) -> bool: return self.to_block is not None


@dataclass(slots=True, frozen=True)
class ChunkPlan:
    iterations: int
    chain_head: int
    chunk_size: int
    first_block: int

    def ranges(self) -> Iterator[BlockRange]:
        """Contiguous inclusive chunks covering [first_block, chain_head]."""
        for i in range(self.iterations):
            start = self.first_block + i * self.chunk_size
            yield BlockRange(start, min(start + self.chunk_size - 1, self.chain_head))


@dataclass(slots=True, frozen=True)
class QueryDescriptor:
    kind: EventKind
    start_block: int
    end_block: int | None                  # None -> "latest" at execution time
    cancel: asyncio.Event = field(default_factory=asyncio.Event, compare=False)


@dataclass(slots=True, frozen=True)
class EventLog:
    address: Address
    topics: tuple[str, ...]                # lowercased, 0x-prefixed
    data_hex: str
    block_number: int
    tx_hash: str
    log_index: int

    @property
    def topic0(self) -> str | None: return self.topics[0] if self.topics else None

    @property
    def ordering_key(self) -> tuple[int, int]:
        # log_index is unique within a block
        return (self.block_number, self.log_index)


# ---------- log-derived records (fixed-point values kept as raw 18-decimal ints)

@dataclass(slots=True, frozen=True)
class Trade:
    market_id: int
    account_id: int
    fill_price: int
    pnl: int
    accrued_funding: int
    size_delta: int
    new_size: int
    total_fees: int
    referral_fees: int
    collected_fees: int
    settlement_reward: int
    tracking_code: str
    settler: str
    block_number: int
    tx_hash: str
    log_index: int
    block_timestamp: int


@dataclass(slots=True, frozen=True)
class Order:
    market_id: int
    account_id: int
    order_type: int
    size_delta: int
    acceptable_price: int
    settlement_time: int
    expiration_time: int
    tracking_code: str
    sender: str
    block_number: int
    tx_hash: str
    log_index: int
    block_timestamp: int


@dataclass(slots=True, frozen=True)
class MarketUpdate:
    market_id: int
    price: int
    skew: int
    size: int
    size_delta: int
    current_funding_rate: int
    current_funding_velocity: int
    block_number: int
    tx_hash: str
    log_index: int
    block_timestamp: int


@dataclass(slots=True, frozen=True)
class Liquidation:
    account_id: int
    market_id: int
    amount_liquidated: int
    current_position_size: int
    block_number: int
    tx_hash: str
    log_index: int
    block_timestamp: int


# ---------- point-in-time reads (answered at the latest block)

@dataclass(slots=True, frozen=True)
class AccountPermission:
    user: str
    permissions: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class Account:
    account_id: int
    owner: str
    last_interaction: int
    permissions: tuple[AccountPermission, ...]


@dataclass(slots=True, frozen=True)
class Position:
    account_id: int
    market_id: int
    total_pnl: int
    accrued_funding: int
    position_size: int


@dataclass(slots=True, frozen=True)
class MarketMetadata:
    market_id: int
    name: str
    symbol: str


LogRecord = Trade | Order | MarketUpdate | Liquidation
Record = Trade | Order | MarketUpdate | Liquidation | Account | Position | MarketMetadata


# columns that always fit int64; every other int is a uint256/int256 and is exported as a string
INT64_COLUMNS = frozenset({"block_number", "log_index", "block_timestamp", "order_type", "last_interaction"})

def record_to_row(rec: Record) -> dict[str, object]:
    """Flatten a record into export-friendly scalars (big ints as strings)."""
    row: dict[str, object] = {"record": type(rec).__name__}
    for name in rec.__dataclass_fields__:
        v = getattr(rec, name)
        if isinstance(v, bool):
            row[name] = v
        elif isinstance(v, int):
            row[name] = v if name in INT64_COLUMNS else str(v)
        elif isinstance(v, tuple):
            row[name] = json.dumps([{"user": p.user, "permissions": list(p.permissions)} for p in v])
        else:
            row[name] = v
    return row
