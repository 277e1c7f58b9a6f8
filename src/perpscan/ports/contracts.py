# perpscan/ports/contracts.py
from __future__ import annotations

from typing import Any, Protocol

from ..domain.abi import FunctionABI
from ..domain.models import EventLog
from ..domain.value_types import Address, ContractName, EventKind


class ContractHandle(Protocol):
    """Port for a deployed contract: log filtering and read-only calls."""

    name: ContractName
    address: Address
    first_block: int

    async def filter_logs(self, kind: EventKind, start: int, end: int | None) -> list[EventLog]:
        """Logs of `kind` emitted by this contract in [start, end]; end=None means latest."""

    async def call(self, fn: FunctionABI, *args: Any) -> tuple[Any, ...]:
        """Read contract state at the latest block and return the decoded outputs."""
