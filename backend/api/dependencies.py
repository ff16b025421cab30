"""Shared dependencies for API routes.

Settings are turned into per-component config objects here, once. Tests
swap any of these out with ``app.dependency_overrides``.
"""

from functools import lru_cache

from config import settings
from services.candidate_service import CandidateService
from services.cv_chunker import CVChunker
from services.embeddings import create_embedder
from services.evaluation_service import EvaluationOrchestrator
from services.gemini_client import GeminiClient
from services.leases import CandidateLeases
from services.repository import InMemoryRepository
from services.retrieval import RetrievalOrchestrator
from services.vector_store import InMemoryVectorStore


@lru_cache
def get_repository() -> InMemoryRepository:
    return InMemoryRepository()


@lru_cache
def get_llm_client() -> GeminiClient:
    return GeminiClient(settings.provider_config())


@lru_cache
def get_retrieval() -> RetrievalOrchestrator:
    store = InMemoryVectorStore(create_embedder(settings.embedding_config()))
    return RetrievalOrchestrator(store, settings.retrieval_config())


@lru_cache
def get_leases() -> CandidateLeases:
    return CandidateLeases(settings.evaluation_lease_timeout_seconds)


def get_candidate_service() -> CandidateService:
    return CandidateService(
        repository=get_repository(),
        retrieval=get_retrieval(),
        llm=get_llm_client(),
        chunker=CVChunker(settings.chunking_config()),
        config=settings.evaluation_config(),
    )


def get_evaluation_service() -> EvaluationOrchestrator:
    return EvaluationOrchestrator(
        repository=get_repository(),
        retrieval=get_retrieval(),
        llm=get_llm_client(),
        leases=get_leases(),
        config=settings.evaluation_config(),
    )
