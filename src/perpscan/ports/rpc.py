# perpscan/ports/rpc.py
from __future__ import annotations

from typing import Protocol, Sequence
from ..domain.models import EventLog
from ..domain.value_types import Address, Topic0


class RPCClient(Protocol):
    """Port defining the contract for an Ethereum JSON-RPC client."""

    async def latest_block(self) -> int:
        """Return the latest block number as an integer."""

    async def get_logs(
        self,
        address: Address,
        topic0s: Sequence[Topic0],
        from_block: int,
        to_block: int | None,
    ) -> list[EventLog]:
        """Return normalized, typed logs for [from_block, to_block] inclusive; None means latest."""

    async def call(self, to: Address, data: bytes, block: int | str = "latest") -> bytes:
        """eth_call against `to`; return the raw ABI-encoded result."""

    async def block_timestamp(self, block_number: int) -> int:
        """Return the unix timestamp of the given block."""

    async def aclose(self) -> None:
        """Release the underlying transport."""
