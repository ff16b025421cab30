"""Per-candidate evaluation leases.

At most one evaluation runs per candidate at a time. Later callers wait up
to ``timeout_seconds`` for the holder to finish, then give up with
EvaluationInProgressError.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from services.errors import EvaluationInProgressError

logger = logging.getLogger(__name__)


class CandidateLeases:
    def __init__(self, timeout_seconds: float = 120.0) -> None:
        self.timeout_seconds = timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def is_held(self, candidate_id: str) -> bool:
        lock = self._locks.get(candidate_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, candidate_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(candidate_id, asyncio.Lock())
        self._waiters[candidate_id] = self._waiters.get(candidate_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as e:
                logger.warning("Evaluation lease for candidate %s not acquired in %.1fs",
                               candidate_id, self.timeout_seconds)
                raise EvaluationInProgressError(
                    f"An evaluation for candidate {candidate_id} is already in progress"
                ) from e
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[candidate_id] -= 1
            if self._waiters[candidate_id] == 0:
                del self._waiters[candidate_id]
                self._locks.pop(candidate_id, None)
