from __future__ import annotations

import httpx

from ..domain.abi import EVENTS
from ..domain.models import EventLog, QueryDescriptor
from ..exceptions import JSONRPCError, QueryCancelledError, RPCProviderError
from ..logging import get_logger
from ..ports.contracts import ContractHandle

logger = get_logger(__name__)

# transport failures and node-side errors; everything else is a bug and propagates as is
RPC_FAILURES = (httpx.HTTPError, JSONRPCError)


def check_cancelled(query: QueryDescriptor) -> None:
    if query.cancel.is_set():
        raise QueryCancelledError(f"{query.kind} query cancelled")


async def fetch_events(
    contract: ContractHandle,
    query: QueryDescriptor,
    start_block: int | None = None,
    end_block: int | None = None,
) -> tuple[EventLog, ...]:
    """Run one log filter for `query.kind` on `contract`.

    start_block/end_block override the descriptor's bounds for a single chunk.
    """
    check_cancelled(query)
    start = query.start_block if start_block is None else start_block
    end = query.end_block if end_block is None else end_block
    operation = EVENTS[query.kind].filter_name
    try:
        logs = await contract.filter_logs(query.kind, start, end)
    except RPC_FAILURES as e:
        logger.error("rpc_error", layer="EventFetcher", operation=operation,
                     from_block=start, to_block=end, error=str(e))
        raise RPCProviderError(operation, e) from e
    logger.debug("chunk_fetched", kind=query.kind, from_block=start, to_block=end, logs=len(logs))
    return tuple(logs)
