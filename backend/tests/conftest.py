"""Shared test configuration, pytest markers and pipeline fakes."""

import asyncio
import os
import re
import zlib

# Must be set before config/main are imported by any test module
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import numpy as np
import pytest

from config import EvaluationConfig
from services.embeddings import BaseEmbedder
from services.leases import CandidateLeases
from services.repository import InMemoryRepository
from services.retrieval import RetrievalOrchestrator
from services.vector_store import InMemoryVectorStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: talks to a real provider (needs GEMINI_API_KEY)"
    )


SAMPLE_CV = """Jane Smith
jane.smith@email.com | +1-555-0199 | github.com/janesmith
San Francisco, CA

Summary
Backend engineer with 7 years of experience building data-heavy Python services,
distributed job queues and public REST APIs for fintech products.

Experience
Senior Software Engineer | Stripe | 2020 - Present
- Designed and operated the payouts reconciliation service in Python and Go,
  processing 40M ledger entries per day with exactly-once semantics.
- Led a team of 4 engineers migrating batch jobs from cron to Airflow, cutting
  failed nightly runs from 12 per month to under 1.
- Introduced contract tests between 9 internal services, which removed a whole
  class of deploy-time breakages.

Software Engineer | Plaid | 2017 - 2020
- Built bank connector workers in Python with asyncio and PostgreSQL.
- Owned the rate-limiting layer in front of 300+ partner institutions and
  reduced 429 responses by 70% through adaptive token buckets.
- Mentored two junior engineers and ran the team's on-call rotation.

Junior Developer at Acme Analytics (2016 - 2017)
- Wrote ETL scripts in pandas and maintained internal Flask dashboards.
- Automated weekly reporting that previously took an analyst two days.

Education
Bachelor of Science in Computer Science
University of California, Berkeley, 2016

Skills
Python, Go, PostgreSQL, Redis, Kafka, Airflow, Docker, Kubernetes, AWS, Terraform
"""

SAMPLE_BLUEPRINT = {
    "title": "Senior Backend Engineer",
    "must_have": ["5+ years Python", "PostgreSQL", "Distributed systems"],
    "nice_to_have": ["Go", "Kubernetes"],
    "responsibilities": ["Own payment services", "Mentor engineers"],
}

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class FakeEmbedder(BaseEmbedder):
    """Hashed bag-of-words vectors: deterministic and dependency-free."""

    name = "fake"

    def __init__(self, dim: int = 256) -> None:
        self.dim = dim
        self.calls: list[int] = []

    def load(self) -> None:
        pass

    def _embed_batch(self, texts: list[str]) -> np.ndarray:
        self.calls.append(len(texts))
        matrix = np.zeros((len(texts), self.dim), dtype=np.float32)
        for row, text in enumerate(texts):
            for token in _TOKEN_RE.findall(text.lower()):
                matrix[row, zlib.crc32(token.encode()) % self.dim] += 1.0
        return matrix


class StubLLM:
    """Scripted provider: each call pops the next result or raises it."""

    def __init__(self, evaluations=None, profiles=None, blueprints=None) -> None:
        self.evaluations = list(evaluations or [])
        self.profiles = list(profiles or [])
        self.blueprints = list(blueprints or [])
        self.evaluate_calls: list[tuple[dict, dict, str]] = []
        self.profile_calls: list[tuple[str, list]] = []
        self.blueprint_calls: list[str] = []
        self.delay = 0.0

    @staticmethod
    def _next(queue):
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, BaseException):
            raise result
        return result

    async def evaluate(self, blueprint: dict, profile: dict, cv_text: str) -> dict:
        self.evaluate_calls.append((blueprint, profile, cv_text))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._next(self.evaluations)

    async def parse_cv_to_profile(self, cv_text: str, retrieved_chunks: list) -> dict:
        self.profile_calls.append((cv_text, retrieved_chunks))
        return self._next(self.profiles)

    async def parse_jd_to_blueprint(self, job_description: str) -> dict:
        self.blueprint_calls.append(job_description)
        return self._next(self.blueprints)


class FailingStore:
    """Vector store that is always unreachable."""

    def __init__(self, message: str = "Index not found (404)") -> None:
        self.message = message

    async def upsert(self, candidate_id, chunks):
        raise RuntimeError(self.message)

    async def search(self, candidate_id, query_text, top_k):
        raise RuntimeError(self.message)

    async def delete(self, candidate_id):
        raise RuntimeError(self.message)


COMPLETE_EVALUATION = {
    "decision": "yes",
    "confidence": 0.85,
    "overall_match_score": 0.8,
    "criteria_matches": [
        {"criterion": "Python depth", "weight": 0.4, "score": 0.9, "matched": True,
         "evidence": ["Designed and operated the payouts reconciliation service"], "reasoning": "7 years"},
        {"criterion": "PostgreSQL", "weight": 0.3, "score": 0.8, "matched": True, "evidence": [], "reasoning": ""},
        {"criterion": "Distributed systems", "weight": 0.2, "score": 0.7, "matched": True, "evidence": [], "reasoning": ""},
        {"criterion": "Mentoring", "weight": 0.1, "score": 0.6, "matched": False, "evidence": [], "reasoning": ""},
    ],
    "strengths": [{"point": "Payments domain", "evidence": "Stripe payouts"}],
    "summary": "Strong backend engineer with payments experience.",
    "skills_comparison": [
        {"skill": "Python", "jd_requirement": "5+ years", "candidate_level": "expert", "candidate_years": 7, "matches": True},
        {"skill": "Rust", "jd_requirement": "nice to have", "candidate_level": None, "candidate_years": 0, "matches": False},
    ],
}


@pytest.fixture
def sleeps():
    """Recording replacement for asyncio.sleep."""
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    fake_sleep.delays = delays
    return fake_sleep


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def store(embedder):
    return InMemoryVectorStore(embedder)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def retrieval(store):
    return RetrievalOrchestrator(store)


@pytest.fixture
def leases():
    return CandidateLeases(timeout_seconds=5.0)


@pytest.fixture
def evaluation_config():
    return EvaluationConfig(max_attempts=4, backoff_base_ms=2000)
