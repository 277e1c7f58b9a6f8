"""Turn raw logs and contract reads into domain records.

Log-derived records are enriched with the timestamp of the block they were
emitted in. Account, Position and MarketMetadata are point-in-time reads
answered at the latest block, so an "historical" account carries present-day
owner and permissions. Nothing is cached; every call goes to the node.
"""
from __future__ import annotations

from typing import Any, Iterable

from eth_utils import to_checksum_address

from ..domain.abi import (
    GET_ACCOUNT_LAST_INTERACTION, GET_ACCOUNT_OWNER, GET_ACCOUNT_PERMISSIONS,
    GET_MARKET_METADATA, GET_OPEN_POSITION, FunctionABI,
)
from ..domain.decoding import decode_account_created, decode_log, decode_permission_name
from ..domain.models import (
    Account, AccountPermission, EventLog, LogRecord, MarketMetadata, Position,
)
from ..exceptions import DecodeError, RPCProviderError
from ..logging import get_logger
from ..ports.contracts import ContractHandle
from ..ports.rpc import RPCClient
from .fetching import RPC_FAILURES

logger = get_logger(__name__)


class ModelFormatter:
    def __init__(self, rpc: RPCClient, perps_market: ContractHandle) -> None:
        self.rpc = rpc
        self.perps_market = perps_market

    async def _block_timestamp(self, block_number: int) -> int:
        try:
            return await self.rpc.block_timestamp(block_number)
        except RPC_FAILURES as e:
            logger.error("rpc_error", layer="ModelFormatter", operation="HeaderByNumber",
                         block=block_number, error=str(e))
            raise RPCProviderError("HeaderByNumber", e) from e

    async def _read(self, fn: FunctionABI, *args: Any) -> tuple[Any, ...]:
        try:
            return await self.perps_market.call(fn, *args)
        except RPC_FAILURES as e:
            logger.error("rpc_error", layer="ModelFormatter", operation=fn.call_name,
                         args=[str(a) for a in args], error=str(e))
            raise RPCProviderError(fn.call_name, e) from e

    async def format(self, log: EventLog) -> LogRecord:
        ts = await self._block_timestamp(log.block_number)
        return decode_log(log, ts)

    async def format_many(self, logs: Iterable[EventLog]) -> list[LogRecord]:
        """Format in order; the first bad record aborts the batch."""
        out: list[LogRecord] = []
        for lg in logs:
            try:
                out.append(await self.format(lg))
            except DecodeError as e:
                logger.error("decode_error", kind=e.kind, log_index=e.log_index,
                             block=lg.block_number, tx_hash=lg.tx_hash, error=e.reason)
                raise
        return out

    async def format_account(self, account_id: int) -> Account:
        (owner,) = await self._read(GET_ACCOUNT_OWNER, account_id)
        (last_interaction,) = await self._read(GET_ACCOUNT_LAST_INTERACTION, account_id)
        (perms,) = await self._read(GET_ACCOUNT_PERMISSIONS, account_id)
        return Account(
            account_id=account_id,
            owner=to_checksum_address(owner),
            last_interaction=last_interaction,
            permissions=tuple(
                AccountPermission(user=to_checksum_address(user), permissions=tuple(decode_permission_name(p) for p in names))
                for user, names in perms
            ),
        )

    async def format_account_created(self, log: EventLog) -> Account:
        account_id, _ = decode_account_created(log)
        return await self.format_account(account_id)

    async def format_position(self, account_id: int, market_id: int) -> Position:
        total_pnl, accrued_funding, size = await self._read(GET_OPEN_POSITION, account_id, market_id)
        return Position(
            account_id=account_id, market_id=market_id,
            total_pnl=total_pnl, accrued_funding=accrued_funding, position_size=size,
        )

    async def market_metadata(self, market_id: int) -> MarketMetadata:
        name, symbol = await self._read(GET_MARKET_METADATA, market_id)
        return MarketMetadata(market_id=market_id, name=name, symbol=symbol)
