from __future__ import annotations
import asyncio

from ..domain.models import BlockRange, EventLog, QueryDescriptor
from ..logging import get_logger
from ..ports.contracts import ContractHandle
from ..ports.rpc import RPCClient
from .fetching import check_cancelled, fetch_events
from .planning import plan_range

logger = get_logger(__name__)


async def _fetch_sequential(contract: ContractHandle, query: QueryDescriptor,
                            ranges: list[BlockRange]) -> list[tuple[EventLog, ...]]:
    out: list[tuple[EventLog, ...]] = []
    for r in ranges:
        check_cancelled(query)
        out.append(await fetch_events(contract, query, r.start, r.end))
    return out


async def _fetch_concurrent(contract: ContractHandle, query: QueryDescriptor,
                            ranges: list[BlockRange], concurrency: int) -> list[tuple[EventLog, ...]]:
    sem = asyncio.Semaphore(concurrency)

    async def run_chunk(r: BlockRange) -> tuple[EventLog, ...]:
        async with sem:
            check_cancelled(query)
            return await fetch_events(contract, query, r.start, r.end)

    tasks = [asyncio.create_task(run_chunk(r)) for r in ranges]
    try:
        # gather keeps input order, so results line up with `ranges`
        return await asyncio.gather(*tasks)
    finally:
        for t in tasks:
            if not t.done():
                t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def paginate(
    rpc: RPCClient,
    contract: ContractHandle,
    query: QueryDescriptor,
    limit: int | None = None,
    concurrency: int = 1,
) -> list[EventLog]:
    """Collect every log for `query`, chunked when it runs open-ended to the head.

    A bounded query, or one with no limit, is a single filter call. Otherwise
    the range [query.start_block, head] is split into `limit`-sized chunks and
    the results are concatenated in block order. Any chunk failure aborts the
    whole call; no partial list is returned.
    """
    if query.end_block is not None or limit is None:
        return list(await fetch_events(contract, query))

    plan = await plan_range(rpc, query.start_block, limit)
    ranges = list(plan.ranges())

    if concurrency > 1 and len(ranges) > 1:
        chunks = await _fetch_concurrent(contract, query, ranges, concurrency)
    else:
        chunks = await _fetch_sequential(contract, query, ranges)

    out: list[EventLog] = [lg for chunk in chunks for lg in chunk]
    logger.info("pagination_done", kind=query.kind, contract=contract.name,
                from_block=plan.first_block, to_block=plan.chain_head,
                chunks=plan.iterations, logs=len(out))
    return out
