from __future__ import annotations

from typing import Any

from eth_abi import decode as abi_decode, encode as abi_encode
from eth_abi.exceptions import DecodingError, EncodingError

from ..domain.abi import EVENTS, FunctionABI
from ..domain.models import EventLog
from ..domain.value_types import Address, ContractName, EventKind
from ..exceptions import DecodeError
from ..ports.contracts import ContractHandle
from ..ports.rpc import RPCClient


class BoundContract(ContractHandle):
    """A deployed contract bound to an RPC client.

    Event filters are plain eth_getLogs on (address, topic0); reads are
    eth_call at the latest block with eth_abi encoded arguments.
    """

    def __init__(self, name: ContractName, address: str, first_block: int, rpc: RPCClient) -> None:
        if first_block < 0:
            raise ValueError(f"first_block must be >= 0, got {first_block}")
        self.name = name
        self.address = Address(address.lower())
        self.first_block = first_block
        self.rpc = rpc

    def __repr__(self) -> str:
        return f"BoundContract({self.name!r}, {self.address!r}, first_block={self.first_block})"

    async def filter_logs(self, kind: EventKind, start: int, end: int | None) -> list[EventLog]:
        ev = EVENTS[kind]
        if ev.contract != self.name:
            raise ValueError(f"{kind} is emitted by {ev.contract}, not {self.name}")
        return await self.rpc.get_logs(self.address, [ev.topic0], start, end)

    async def call(self, fn: FunctionABI, *args: Any) -> tuple[Any, ...]:
        try:
            data = fn.selector + abi_encode(list(fn.input_types), list(args))
        except EncodingError as e:
            raise ValueError(f"bad arguments for {fn.signature}: {e}") from e
        raw = await self.rpc.call(self.address, data, "latest")
        try:
            return tuple(abi_decode(list(fn.output_types), raw))
        except DecodingError as e:
            raise DecodeError(fn.name, None, str(e)) from e
