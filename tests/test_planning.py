"""Tests for the range iterator: chunk counts, coverage and limit defaults."""

import httpx
import pytest

from perpscan.application.planning import normalize_limit, plan_range
from perpscan.config import DEFAULT_BLOCK_LIMIT
from perpscan.domain.models import BlockRange
from perpscan.exceptions import BlockRangeError, JSONRPCError, RPCProviderError

from conftest import FakeRPC


def _covers_exactly(ranges: list[BlockRange], first: int, head: int) -> bool:
    """True if ranges are contiguous, non-overlapping and span [first, head]."""
    if not ranges or ranges[0].start != first or ranges[-1].end != head:
        return False
    return all(a.end + 1 == b.start for a, b in zip(ranges, ranges[1:])) and all(
        r.start <= r.end for r in ranges
    )


class TestPlanRange:
    @pytest.mark.asyncio
    async def test_head_equal_to_first_block_is_one_iteration(self) -> None:
        plan = await plan_range(FakeRPC(head=100), first_block=100, limit=20_000)
        assert plan.iterations == 1
        assert list(plan.ranges()) == [BlockRange(100, 100)]

    @pytest.mark.asyncio
    async def test_three_chunks_from_genesis(self) -> None:
        plan = await plan_range(FakeRPC(head=45_000), first_block=0, limit=20_000)
        assert plan.iterations == 3
        assert plan.chain_head == 45_000
        assert [(r.start, r.end) for r in plan.ranges()] == [
            (0, 19_999), (20_000, 39_999), (40_000, 45_000),
        ]

    @pytest.mark.asyncio
    async def test_exact_multiple_gets_trailing_single_block_chunk(self) -> None:
        plan = await plan_range(FakeRPC(head=40_000), first_block=0, limit=20_000)
        assert plan.iterations == 3
        assert list(plan.ranges())[-1] == BlockRange(40_000, 40_000)

    @pytest.mark.asyncio
    async def test_zero_limit_behaves_like_default(self) -> None:
        rpc = FakeRPC(head=123_456)
        a = await plan_range(rpc, first_block=1_000, limit=0)
        b = await plan_range(rpc, first_block=1_000, limit=20_000)
        assert a == b
        assert a.chunk_size == DEFAULT_BLOCK_LIMIT

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "first,head,limit",
        [(0, 0, 1), (0, 1, 1), (7, 7, 3), (7, 8, 3), (7, 9, 3), (7, 10, 3),
         (100, 45_000, 20_000), (0, 1_000_000, 999), (5, 6, 10_000)],
    )
    async def test_chunks_cover_range_without_gap_or_overlap(self, first: int, head: int, limit: int) -> None:
        plan = await plan_range(FakeRPC(head=head), first_block=first, limit=limit)
        ranges = list(plan.ranges())
        assert plan.iterations >= 1
        assert len(ranges) == plan.iterations
        assert _covers_exactly(ranges, first, head)
        assert all(r.span() <= limit for r in ranges)

    @pytest.mark.asyncio
    async def test_block_number_failure_is_classified(self) -> None:
        rpc = FakeRPC()
        rpc.fail_latest_block = httpx.ConnectError("connection refused")
        with pytest.raises(RPCProviderError) as exc_info:
            await plan_range(rpc, first_block=0, limit=10)
        assert exc_info.value.operation == "BlockNumber"
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_node_error_is_classified(self) -> None:
        rpc = FakeRPC()
        rpc.fail_latest_block = JSONRPCError("eth_blockNumber", -32000, "header not found")
        with pytest.raises(RPCProviderError, match="BlockNumber"):
            await plan_range(rpc, first_block=0, limit=10)

    @pytest.mark.asyncio
    async def test_head_behind_first_block_is_rejected(self) -> None:
        with pytest.raises(BlockRangeError):
            await plan_range(FakeRPC(head=50), first_block=100, limit=10)

    @pytest.mark.asyncio
    async def test_negative_limit_is_rejected(self) -> None:
        with pytest.raises(BlockRangeError):
            await plan_range(FakeRPC(head=50), first_block=0, limit=-1)


class TestHelpers:
    def test_normalize_limit(self) -> None:
        assert normalize_limit(0) == 20_000
        assert normalize_limit(5) == 5

