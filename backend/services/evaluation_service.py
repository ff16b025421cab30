"""Evaluation orchestrator: decides whether to run, runs, and stores.

Flow:
    evaluate(candidate_id, force)
      ├─ candidate / job missing or not owned      → None
      ├─ stored evaluation complete and not force  → stored evaluation
      └─ lease(candidate_id)                       (wait, or EvaluationInProgressError)
           ├─ stored evaluation changed while waiting → that evaluation
           ├─ job.blueprint missing                  → MissingPrerequisiteError
           ├─ retrieve top-N chunks                  → chunk context
           │     (none → raw CV text, truncated)
           ├─ run_with_retry(llm.evaluate)           → raw JSON
           ├─ normalize()                            → Evaluation
           └─ save, status → evaluated, audit

    record_decision(candidate_id, decision)
      └─ stored evaluation marked, status → invited | rejected | on_hold, audit
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from config import EvaluationConfig
from models.schemas.candidate import Candidate, Job
from models.schemas.evaluation import Evaluation, EvaluationRecord, FinalDecision
from services.errors import EvaluationError, MissingPrerequisiteError
from services.evaluation_normalizer import is_complete, normalize
from services.gemini_client import LLMClient
from services.leases import CandidateLeases
from services.prompt_builder import PROMPT_VERSION, format_chunks, truncate_cv_text
from services.repository import InMemoryRepository
from services.retrieval import RetrievalOrchestrator
from services.retry import RetryPolicy, run_with_retry

logger = logging.getLogger(__name__)

EVALUATION_QUERY = "skills experience education qualifications responsibilities achievements"


class EvaluationOrchestrator:
    def __init__(
        self,
        repository: InMemoryRepository,
        retrieval: RetrievalOrchestrator,
        llm: LLMClient,
        leases: CandidateLeases,
        config: EvaluationConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.repository = repository
        self.retrieval = retrieval
        self.llm = llm
        self.leases = leases
        self.config = config or EvaluationConfig()
        self.policy = RetryPolicy(
            max_attempts=self.config.max_attempts,
            base_delay_ms=self.config.backoff_base_ms,
        )
        self.sleep = sleep

    async def _load(self, candidate_id: str, owner_id: str | None) -> tuple[Candidate, Job] | None:
        candidate = await self.repository.get_candidate(candidate_id)
        if candidate is None:
            return None
        if owner_id is not None and candidate.owner_id != owner_id:
            return None
        job = await self.repository.get_job(candidate.job_id)
        if job is None:
            return None
        return candidate, job

    async def get_evaluation(self, candidate_id: str, owner_id: str | None = None) -> EvaluationRecord | None:
        if await self._load(candidate_id, owner_id) is None:
            return None
        return await self.repository.get_evaluation(candidate_id)

    async def record_decision(
        self, candidate_id: str, decision: FinalDecision, owner_id: str | None = None
    ) -> EvaluationRecord | None:
        """Store the recruiter's final decision on the current evaluation.

        None when the candidate is unknown or has not been evaluated yet.
        """
        if await self._load(candidate_id, owner_id) is None:
            return None
        record = await self.repository.update_evaluation(
            candidate_id, final_decision=decision, decided_at=datetime.now(timezone.utc)
        )
        if record is None:
            return None
        await self.repository.set_candidate_status(candidate_id, decision)
        await self.repository.record_audit(candidate_id, f"decision_{decision}", {"evaluation_id": record.id})
        logger.info("Candidate %s marked %s", candidate_id, decision)
        return record

    async def evaluate(
        self, candidate_id: str, force: bool = False, owner_id: str | None = None
    ) -> Evaluation | None:
        """Return a complete evaluation for the candidate, running one if needed."""
        loaded = await self._load(candidate_id, owner_id)
        if loaded is None:
            return None

        existing = await self.repository.get_evaluation(candidate_id)
        if existing is not None and not force:
            if is_complete(existing.evaluation):
                logger.info("Returning stored evaluation for candidate %s", candidate_id)
                return existing.evaluation
            logger.info("Stored evaluation for candidate %s is incomplete, re-running", candidate_id)
        seen_id = existing.id if existing else None

        if self.leases.is_held(candidate_id):
            logger.info("Evaluation of candidate %s already running, waiting for it", candidate_id)
        async with self.leases.hold(candidate_id):
            current = await self.repository.get_evaluation(candidate_id)
            if current is not None and current.id != seen_id and is_complete(current.evaluation):
                logger.info("Candidate %s was evaluated while waiting for the lease", candidate_id)
                return current.evaluation

            # Re-read: the profile may have been parsed while waiting
            loaded = await self._load(candidate_id, owner_id)
            if loaded is None:
                return None
            candidate, job = loaded
            return await self._run(candidate, job, replacing=current is not None)

    async def _run(self, candidate: Candidate, job: Job, replacing: bool) -> Evaluation:
        if not job.blueprint:
            error = MissingPrerequisiteError(f"Job {job.id} has no blueprint to evaluate against")
            await self._record_failure(candidate.id, error)
            raise error

        cv_text = await self._build_context(candidate)
        profile = candidate.profile or {}

        try:
            raw = await run_with_retry(
                lambda: self.llm.evaluate(job.blueprint, profile, cv_text),
                self.policy,
                sleep=self.sleep,
                label=f"Evaluation of candidate {candidate.id}",
            )
        except EvaluationError as e:
            await self._record_failure(candidate.id, e)
            raise

        evaluation = normalize(raw)
        await self.repository.save_evaluation(candidate.id, evaluation, prompt_version=PROMPT_VERSION)
        await self.repository.set_candidate_status(candidate.id, "evaluated")
        await self.repository.record_audit(
            candidate.id,
            "re_evaluated" if replacing else "evaluated",
            {
                "decision": evaluation.decision,
                "confidence": evaluation.confidence,
                "overall_match_score": evaluation.overall_match_score,
                "prompt_version": PROMPT_VERSION,
            },
        )
        logger.info(
            "Evaluated candidate %s: decision=%s confidence=%.2f score=%.2f",
            candidate.id, evaluation.decision, evaluation.confidence, evaluation.overall_match_score,
        )
        return evaluation

    async def _build_context(self, candidate: Candidate) -> str:
        local_chunks = await self.repository.get_chunks(candidate.id)
        chunks = await self.retrieval.retrieve(
            candidate.id,
            EVALUATION_QUERY,
            top_k=self.config.context_top_k,
            fallback_chunks=local_chunks,
        )
        if chunks:
            return format_chunks(chunks)
        logger.info("No chunks for candidate %s, using raw CV text", candidate.id)
        return truncate_cv_text(candidate.cv_raw_text, self.config.max_cv_chars)

    async def _record_failure(self, candidate_id: str, error: Exception) -> None:
        await self.repository.record_audit(
            candidate_id,
            "evaluation_failed",
            {"error": str(error), "error_type": type(error).__name__},
        )
