"""Vector store adapters for CV chunk embeddings.

Every candidate gets its own namespace (``candidate-{id}``) so writes and
reads for different candidates never interfere.
"""

import asyncio
import logging
from typing import Protocol

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as sklearn_cosine

from models.schemas.chunk import Chunk, RetrievedChunk
from services.embeddings import BaseEmbedder
from services.errors import IndexNotFoundError, VectorStoreError

logger = logging.getLogger(__name__)

UPSERT_BATCH_SIZE = 100


def namespace_for(candidate_id: str) -> str:
    return f"candidate-{candidate_id}"


class VectorStore(Protocol):
    """Contract consumed by the retrieval layer. Treated as unreliable."""

    async def upsert(self, candidate_id: str, chunks: list[Chunk]) -> None: ...

    async def search(self, candidate_id: str, query_text: str, top_k: int) -> list[RetrievedChunk]: ...

    async def delete(self, candidate_id: str) -> None: ...


class InMemoryVectorStore:
    """Process-local store: one embedding matrix per candidate namespace."""

    def __init__(self, embedder: BaseEmbedder) -> None:
        self.embedder = embedder
        self._namespaces: dict[str, tuple[list[Chunk], np.ndarray]] = {}

    async def upsert(self, candidate_id: str, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        namespace = namespace_for(candidate_id)
        existing, matrix = self._namespaces.get(namespace, ([], None))
        by_index = {c.index: i for i, c in enumerate(existing)}

        stored = list(existing)
        rows = [] if matrix is None else list(matrix)
        n_batches = 0
        for start in range(0, len(chunks), UPSERT_BATCH_SIZE):
            batch = chunks[start:start + UPSERT_BATCH_SIZE]
            embeddings = await asyncio.to_thread(self.embedder.embed, [c.text for c in batch])
            if len(embeddings) != len(batch):
                raise VectorStoreError(
                    f"Embedder returned {len(embeddings)} vectors for {len(batch)} chunks"
                )
            for chunk, vector in zip(batch, embeddings):
                if chunk.index in by_index:
                    stored[by_index[chunk.index]] = chunk
                    rows[by_index[chunk.index]] = vector
                else:
                    by_index[chunk.index] = len(stored)
                    stored.append(chunk)
                    rows.append(vector)
            n_batches += 1

        self._namespaces[namespace] = (stored, np.vstack(rows))
        logger.info(
            "Upserted %d chunks to namespace %s in %d batches", len(chunks), namespace, n_batches
        )

    async def search(self, candidate_id: str, query_text: str, top_k: int) -> list[RetrievedChunk]:
        namespace = namespace_for(candidate_id)
        if not self.has_chunks(candidate_id):
            raise IndexNotFoundError(f"Namespace {namespace} not found (404)")
        chunks, matrix = self._namespaces[namespace]

        query = await asyncio.to_thread(self.embedder.embed, [query_text])
        scores = sklearn_cosine(query, matrix)[0]
        order = np.argsort(scores)[::-1][:top_k]

        return [
            RetrievedChunk(
                **chunks[i].model_dump(),
                relevance_score=float(min(1.0, max(0.0, scores[i]))),
            )
            for i in order
        ]

    async def delete(self, candidate_id: str) -> None:
        self._namespaces.pop(namespace_for(candidate_id), None)

    def has_chunks(self, candidate_id: str) -> bool:
        return namespace_for(candidate_id) in self._namespaces
