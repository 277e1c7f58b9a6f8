from __future__ import annotations
import asyncio

from ..domain.abi import EVENTS
from ..domain.models import BlockSpan, QueryDescriptor
from ..domain.value_types import EventKind
from ..exceptions import BlockRangeError
from ..ports.contracts import ContractHandle


def build_query(
    contract: ContractHandle,
    kind: EventKind,
    span: BlockSpan,
    cancel: asyncio.Event | None = None,
) -> QueryDescriptor:
    """Concrete query for `kind` over `span`; from_block=0 means the contract's first block."""
    if EVENTS[kind].contract != contract.name:
        raise ValueError(f"{kind} is emitted by {EVENTS[kind].contract}, not {contract.name}")
    start = span.from_block or contract.first_block
    if span.to_block is not None and start > span.to_block:
        raise BlockRangeError(
            f"{contract.name} starts at block {start}, after to_block ({span.to_block})"
        )
    return QueryDescriptor(
        kind=kind,
        start_block=start,
        end_block=span.to_block,
        cancel=cancel if cancel is not None else asyncio.Event(),
    )
