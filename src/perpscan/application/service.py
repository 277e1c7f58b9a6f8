"""Query facade: one coroutine per (event kind, bounded | paginated) pair."""
from __future__ import annotations

import asyncio

from ..adapters.contract_binding import BoundContract
from ..adapters.rpc_httpx import HttpxRPC
from ..config import AppSettings
from ..domain.abi import EVENTS
from ..domain.models import (
    Account, BlockSpan, EventLog, Liquidation, LogRecord, MarketMetadata, MarketUpdate, Order, Position,
    Trade,
)
from ..domain.value_types import ContractName, EventKind
from ..exceptions import ConfigError
from ..logging import get_logger
from ..ports.contracts import ContractHandle
from ..ports.rpc import RPCClient
from .aggregation import paginate
from .filters import build_query
from .formatting import ModelFormatter

logger = get_logger(__name__)


class PerpsService:
    """Reads perps-market history through an injected RPC client and contract handles.

    Bounded methods take (from_block, to_block); from_block=0 means the
    emitting contract's first block and to_block=None a single open-ended
    query to the latest block. *_limit methods paginate from the contract's
    first block to the chain head in `limit`-block chunks (0 -> 20 000).
    """

    def __init__(
        self,
        rpc: RPCClient,
        core: ContractHandle,
        spot_market: ContractHandle,
        perps_market: ContractHandle,
        *,
        concurrency: int = 1,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.rpc = rpc
        self.contracts: dict[ContractName, ContractHandle] = {
            "core": core,
            "spot_market": spot_market,
            "perps_market": perps_market,
        }
        self.concurrency = concurrency
        self.formatter = ModelFormatter(rpc, perps_market)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "PerpsService":
        if not settings.rpc.url:
            raise ConfigError("PERPSCAN_RPC_URL is not set")
        missing = [n for n, c in (("core", settings.core), ("spot_market", settings.spot_market),
                                  ("perps_market", settings.perps_market)) if not c.address]
        if missing:
            raise ConfigError(f"contract address not configured for: {', '.join(missing)}")

        rpc = HttpxRPC(settings.rpc.url, timeout_s=settings.rpc.timeout_s,
                       max_conn=settings.rpc.max_connections, http2=settings.rpc.http2)
        logger.info("service_configured", perps_market=settings.perps_market.address,
                    perps_first_block=settings.perps_market.first_block,
                    concurrency=settings.pagination.concurrency)
        return cls(
            rpc,
            BoundContract("core", settings.core.address, settings.core.first_block, rpc),
            BoundContract("spot_market", settings.spot_market.address, settings.spot_market.first_block, rpc),
            BoundContract("perps_market", settings.perps_market.address, settings.perps_market.first_block, rpc),
            concurrency=settings.pagination.concurrency,
        )

    async def aclose(self) -> None:
        await self.rpc.aclose()

    async def __aenter__(self) -> "PerpsService":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ---------- shared plumbing

    async def _logs(self, kind: EventKind, span: BlockSpan, limit: int | None,
                    cancel: asyncio.Event | None) -> list[EventLog]:
        contract = self.contracts[EVENTS[kind].contract]
        query = build_query(contract, kind, span, cancel)
        return await paginate(self.rpc, contract, query, limit, self.concurrency)

    async def _records(self, kind: EventKind, span: BlockSpan, limit: int | None,
                       cancel: asyncio.Event | None) -> list[LogRecord]:
        logs = await self._logs(kind, span, limit, cancel)
        return await self.formatter.format_many(logs)

    async def _accounts(self, span: BlockSpan, limit: int | None, cancel: asyncio.Event | None) -> list[Account]:
        logs = await self._logs("AccountCreated", span, limit, cancel)
        return [await self.formatter.format_account_created(lg) for lg in logs]

    # ---------- trades (OrderSettled)

    async def retrieve_trades(self, from_block: int = 0, to_block: int | None = None,
                              *, cancel: asyncio.Event | None = None) -> list[Trade]:
        return await self._records("OrderSettled", BlockSpan(from_block, to_block), None, cancel)

    async def retrieve_trades_limit(self, limit: int = 0, *, cancel: asyncio.Event | None = None) -> list[Trade]:
        return await self._records("OrderSettled", BlockSpan(), limit, cancel)

    # ---------- orders (OrderCommitted)

    async def retrieve_orders(self, from_block: int = 0, to_block: int | None = None,
                              *, cancel: asyncio.Event | None = None) -> list[Order]:
        return await self._records("OrderCommitted", BlockSpan(from_block, to_block), None, cancel)

    async def retrieve_orders_limit(self, limit: int = 0, *, cancel: asyncio.Event | None = None) -> list[Order]:
        return await self._records("OrderCommitted", BlockSpan(), limit, cancel)

    # ---------- market updates (MarketUpdated)

    async def retrieve_market_updates(self, from_block: int = 0, to_block: int | None = None,
                                      *, cancel: asyncio.Event | None = None) -> list[MarketUpdate]:
        return await self._records("MarketUpdated", BlockSpan(from_block, to_block), None, cancel)

    async def retrieve_market_updates_limit(self, limit: int = 0,
                                            *, cancel: asyncio.Event | None = None) -> list[MarketUpdate]:
        return await self._records("MarketUpdated", BlockSpan(), limit, cancel)

    # ---------- liquidations (PositionLiquidated)

    async def retrieve_liquidations(self, from_block: int = 0, to_block: int | None = None,
                                    *, cancel: asyncio.Event | None = None) -> list[Liquidation]:
        return await self._records("PositionLiquidated", BlockSpan(from_block, to_block), None, cancel)

    async def retrieve_liquidations_limit(self, limit: int = 0,
                                          *, cancel: asyncio.Event | None = None) -> list[Liquidation]:
        return await self._records("PositionLiquidated", BlockSpan(), limit, cancel)

    # ---------- point-in-time reads

    async def get_position(self, account_id: int, market_id: int) -> Position:
        return await self.formatter.format_position(account_id, market_id)

    async def get_market_metadata(self, market_id: int) -> MarketMetadata:
        return await self.formatter.market_metadata(market_id)

    async def format_account(self, account_id: int) -> Account:
        return await self.formatter.format_account(account_id)

    async def format_accounts(self, *, cancel: asyncio.Event | None = None) -> list[Account]:
        """Every account created since the perps market was deployed, in one query."""
        return await self._accounts(BlockSpan(), None, cancel)

    async def format_accounts_limit(self, limit: int = 0,
                                    *, cancel: asyncio.Event | None = None) -> list[Account]:
        return await self._accounts(BlockSpan(), limit, cancel)
