"""Retrieval layer: index CV chunks and fetch the ones relevant to a query.

Vector-store failures never reach the caller. After an index error the
candidate is served from its local chunks without searching; search errors
fall back the same way. Fallback results are the first ``top_k`` local
chunks stamped with relevance 1.0.
"""

import logging

from config import RetrievalConfig
from models.schemas.chunk import Chunk, RetrievedChunk
from services.vector_store import VectorStore

logger = logging.getLogger(__name__)


def _fallback(chunks: list[Chunk], top_k: int) -> list[RetrievedChunk]:
    return [
        RetrievedChunk(**chunk.model_dump(), relevance_score=1.0)
        for chunk in chunks[:top_k]
    ]


class RetrievalOrchestrator:
    def __init__(self, store: VectorStore | None, config: RetrievalConfig | None = None) -> None:
        self.store = store
        self.config = config or RetrievalConfig()
        self._local: dict[str, list[Chunk]] = {}
        self._unindexed: set[str] = set()

    async def index(self, candidate_id: str, chunks: list[Chunk]) -> None:
        self._local[candidate_id] = list(chunks)
        if self.store is None:
            self._unindexed.add(candidate_id)
            return
        try:
            await self.store.upsert(candidate_id, chunks)
            self._unindexed.discard(candidate_id)
        except Exception as e:
            logger.warning(
                "Indexing failed for candidate %s, retrieval will use local chunks: %s",
                candidate_id, e,
            )
            self._unindexed.add(candidate_id)

    async def retrieve(
        self,
        candidate_id: str,
        query_text: str,
        top_k: int | None = None,
        fallback_chunks: list[Chunk] | None = None,
    ) -> list[RetrievedChunk]:
        """Return up to ``top_k`` chunks most relevant to ``query_text``."""
        k = top_k if top_k is not None else self.config.default_top_k
        local = self._local.get(candidate_id) or fallback_chunks or []

        if self.store is None:
            logger.warning("No vector store configured, using first %d local chunks", k)
            return _fallback(local, k)

        # A failed upsert may have left a partial namespace behind
        if candidate_id in self._unindexed:
            logger.warning(
                "Candidate %s was not indexed, using first %d local chunks", candidate_id, k
            )
            return _fallback(local, k)

        try:
            results = await self.store.search(candidate_id, query_text, k)
        except Exception as e:
            logger.warning(
                "Vector search failed for candidate %s, using first %d local chunks: %s",
                candidate_id, k, e,
            )
            return _fallback(local, k)

        return results[:k]

    async def forget(self, candidate_id: str) -> None:
        """Best-effort removal of a candidate's vectors and cached chunks."""
        self._local.pop(candidate_id, None)
        self._unindexed.discard(candidate_id)
        if self.store is None:
            return
        try:
            await self.store.delete(candidate_id)
        except Exception as e:
            logger.warning("Failed to delete vectors for candidate %s: %s", candidate_id, e)
