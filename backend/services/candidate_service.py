"""Jobs and candidate ingestion: blueprint parsing, upload, chunk, index, parse, delete."""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from config import EvaluationConfig
from models.schemas.candidate import AuditEntry, Candidate, Job
from models.schemas.chunk import Chunk
from services.cv_chunker import CVChunker
from services.errors import EvaluationError, MissingPrerequisiteError
from services.gemini_client import LLMClient
from services.prompt_builder import PROMPT_VERSION, truncate_cv_text
from services.repository import InMemoryRepository, new_id
from services.retrieval import RetrievalOrchestrator
from services.retry import RetryPolicy, run_with_retry

logger = logging.getLogger(__name__)

PROFILE_QUERY = "work experience skills education certifications contact"
PROFILE_TOP_K = 10

# Profile fields copied onto the candidate record
CONTACT_FIELDS = ("name", "email", "phone")


class CandidateService:
    def __init__(
        self,
        repository: InMemoryRepository,
        retrieval: RetrievalOrchestrator,
        llm: LLMClient,
        chunker: CVChunker | None = None,
        config: EvaluationConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.repository = repository
        self.retrieval = retrieval
        self.llm = llm
        self.chunker = chunker or CVChunker()
        self.config = config or EvaluationConfig()
        self.policy = RetryPolicy(
            max_attempts=self.config.max_attempts,
            base_delay_ms=self.config.backoff_base_ms,
        )
        self.sleep = sleep

    # --- jobs --------------------------------------------------------------

    async def create_job(
        self,
        title: str,
        description: str = "",
        blueprint: dict | None = None,
        owner_id: str | None = None,
    ) -> Job:
        job = Job(id=new_id(), owner_id=owner_id, title=title, description=description, blueprint=blueprint)
        await self.repository.add_job(job)
        logger.info("Created job %s (%s)", job.id, title)
        return job

    async def get_job(self, job_id: str, owner_id: str | None = None) -> Job | None:
        job = await self.repository.get_job(job_id)
        if job is None or (owner_id is not None and job.owner_id != owner_id):
            return None
        return job

    async def parse_blueprint(self, job_id: str, owner_id: str | None = None) -> Job | None:
        """Generate the job's blueprint from its description, replacing any existing one."""
        job = await self.get_job(job_id, owner_id)
        if job is None:
            return None
        if not job.description.strip():
            raise MissingPrerequisiteError(f"Job {job.id} has no description to parse")

        logger.info("Parsing blueprint for job %s", job.id)
        blueprint = await run_with_retry(
            lambda: self.llm.parse_jd_to_blueprint(job.description),
            self.policy,
            sleep=self.sleep,
            label=f"Blueprint parsing for job {job.id}",
            failure_prefix="Failed to parse job description",
        )
        return await self.repository.update_job(job.id, blueprint=blueprint, prompt_version=PROMPT_VERSION)

    # --- candidates --------------------------------------------------------

    async def get_candidate(self, candidate_id: str, owner_id: str | None = None) -> Candidate | None:
        candidate = await self.repository.get_candidate(candidate_id)
        if candidate is None or (owner_id is not None and candidate.owner_id != owner_id):
            return None
        return candidate

    async def create_candidate(
        self,
        job_id: str,
        cv_text: str,
        cv_filename: str = "",
        owner_id: str | None = None,
        name: str | None = None,
        email: str | None = None,
    ) -> Candidate | None:
        """Store a candidate and make their CV retrievable.

        Returns None when the job does not exist for this owner.
        """
        job = await self.get_job(job_id, owner_id)
        if job is None:
            return None

        candidate = Candidate(
            id=new_id(),
            job_id=job.id,
            owner_id=owner_id if owner_id is not None else job.owner_id,
            name=name,
            email=email,
            cv_filename=cv_filename,
            cv_raw_text=cv_text,
        )
        await self.repository.add_candidate(candidate)

        chunks = self.chunker.chunk_cv(cv_text, candidate.id)
        await self.repository.save_chunks(candidate.id, chunks)
        await self.retrieval.index(candidate.id, chunks)

        await self.repository.record_audit(
            candidate.id,
            "cv_uploaded",
            {"filename": cv_filename, "characters": len(cv_text), "chunks": len(chunks)},
        )
        logger.info("Candidate %s created for job %s with %d chunks", candidate.id, job.id, len(chunks))
        return candidate

    async def parse_profile(self, candidate_id: str, owner_id: str | None = None) -> dict | None:
        """Extract a structured profile from the CV with the LLM."""
        candidate = await self.get_candidate(candidate_id, owner_id)
        if candidate is None:
            return None

        chunks = await self.retrieval.retrieve(
            candidate.id,
            PROFILE_QUERY,
            top_k=PROFILE_TOP_K,
            fallback_chunks=await self.repository.get_chunks(candidate.id),
        )
        cv_text = truncate_cv_text(candidate.cv_raw_text, self.config.max_cv_chars)

        try:
            profile = await run_with_retry(
                lambda: self.llm.parse_cv_to_profile(cv_text, chunks),
                self.policy,
                sleep=self.sleep,
                label=f"CV parsing for candidate {candidate.id}",
                failure_prefix="Failed to parse CV",
            )
        except EvaluationError as e:
            await self.repository.record_audit(
                candidate.id, "cv_parse_failed", {"error": str(e), "error_type": type(e).__name__}
            )
            raise

        changes: dict[str, Any] = {"profile": profile}
        for field in CONTACT_FIELDS:
            value = profile.get(field)
            if isinstance(value, str) and value.strip():
                changes[field] = value.strip()
        await self.repository.update_candidate(candidate.id, **changes)

        skills = profile.get("skills")
        await self.repository.record_audit(
            candidate.id,
            "cv_parsed",
            {"chunks_used": len(chunks), "skills": len(skills) if isinstance(skills, list) else 0},
        )
        return profile

    async def get_chunks(self, candidate_id: str, owner_id: str | None = None) -> list[Chunk] | None:
        if await self.get_candidate(candidate_id, owner_id) is None:
            return None
        return await self.repository.get_chunks(candidate_id)

    async def get_audit_trail(self, candidate_id: str, owner_id: str | None = None) -> list[AuditEntry] | None:
        if await self.get_candidate(candidate_id, owner_id) is None:
            return None
        return await self.repository.get_audit_trail(candidate_id)

    async def delete_candidate(self, candidate_id: str, owner_id: str | None = None) -> bool:
        if await self.get_candidate(candidate_id, owner_id) is None:
            return False
        await self.retrieval.forget(candidate_id)
        await self.repository.delete_candidate(candidate_id)
        await self.repository.record_audit(candidate_id, "candidate_deleted")
        logger.info("Deleted candidate %s", candidate_id)
        return True
