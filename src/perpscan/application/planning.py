from __future__ import annotations

from ..config import DEFAULT_BLOCK_LIMIT
from ..domain.models import ChunkPlan
from ..exceptions import BlockRangeError, RPCProviderError
from ..logging import get_logger
from ..ports.rpc import RPCClient
from .fetching import RPC_FAILURES

logger = get_logger(__name__)


def normalize_limit(limit: int) -> int:
    """0 means the provider-safe default; negatives are a caller bug."""
    if limit < 0:
        raise BlockRangeError(f"block limit must be >= 0, got {limit}")
    return limit or DEFAULT_BLOCK_LIMIT


async def plan_range(rpc: RPCClient, first_block: int, limit: int) -> ChunkPlan:
    """Work out how many `limit`-sized chunks reach from `first_block` to the chain head.

    Always at least one iteration, including when the head equals `first_block`.
    """
    try:
        chain_head = await rpc.latest_block()
    except RPC_FAILURES as e:
        logger.error("rpc_error", layer="RangeIterator", operation="BlockNumber", error=str(e))
        raise RPCProviderError("BlockNumber", e) from e

    limit = normalize_limit(limit)
    if chain_head < first_block:
        raise BlockRangeError(f"chain head {chain_head} is behind first block {first_block}")

    iterations = (chain_head - first_block) // limit + 1
    logger.debug("pagination_planned", first_block=first_block, chain_head=chain_head,
                 chunk_size=limit, iterations=iterations)
    return ChunkPlan(iterations=iterations, chain_head=chain_head, chunk_size=limit, first_block=first_block)
