import asyncio

import pytest

from services.errors import EvaluationInProgressError
from services.leases import CandidateLeases


@pytest.mark.asyncio
async def test_hold_serializes_same_candidate():
    leases = CandidateLeases(timeout_seconds=1.0)
    order: list[str] = []

    async def worker(name: str):
        async with leases.hold("c1"):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]


@pytest.mark.asyncio
async def test_different_candidates_do_not_block():
    leases = CandidateLeases(timeout_seconds=0.05)
    async with leases.hold("c1"):
        async with leases.hold("c2"):
            assert leases.is_held("c1")
            assert leases.is_held("c2")


@pytest.mark.asyncio
async def test_timeout_raises_in_progress():
    leases = CandidateLeases(timeout_seconds=0.05)
    async with leases.hold("c1"):
        with pytest.raises(EvaluationInProgressError):
            async with leases.hold("c1"):
                pass


@pytest.mark.asyncio
async def test_lease_released_after_error():
    leases = CandidateLeases(timeout_seconds=0.05)
    with pytest.raises(RuntimeError):
        async with leases.hold("c1"):
            raise RuntimeError("evaluation blew up")

    assert not leases.is_held("c1")
    async with leases.hold("c1"):
        assert leases.is_held("c1")


@pytest.mark.asyncio
async def test_locks_are_cleaned_up():
    leases = CandidateLeases()
    async with leases.hold("c1"):
        pass
    assert leases._locks == {}
