"""In-memory persistence for jobs, candidates, chunks, evaluations and audit.

The async interface mirrors what a database-backed repository would expose,
so services never depend on the storage being in-process.
"""

import logging
import uuid
from typing import Any

from models.schemas.candidate import AuditEntry, Candidate, CandidateStatus, Job
from models.schemas.chunk import Chunk
from models.schemas.evaluation import Evaluation, EvaluationRecord

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


class InMemoryRepository:
    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._candidates: dict[str, Candidate] = {}
        self._chunks: dict[str, list[Chunk]] = {}
        self._evaluations: dict[str, EvaluationRecord] = {}
        self._audit: list[AuditEntry] = []

    # --- jobs --------------------------------------------------------------

    async def add_job(self, job: Job) -> Job:
        self._jobs[job.id] = job
        return job

    async def get_job(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    async def update_job(self, job_id: str, **changes: Any) -> Job | None:
        job = self._jobs.get(job_id)
        if job is None:
            return None
        updated = job.model_copy(update=changes)
        self._jobs[job_id] = updated
        return updated

    # --- candidates --------------------------------------------------------

    async def add_candidate(self, candidate: Candidate) -> Candidate:
        self._candidates[candidate.id] = candidate
        return candidate

    async def get_candidate(self, candidate_id: str) -> Candidate | None:
        return self._candidates.get(candidate_id)

    async def update_candidate(self, candidate_id: str, **changes: Any) -> Candidate | None:
        candidate = self._candidates.get(candidate_id)
        if candidate is None:
            return None
        updated = candidate.model_copy(update=changes)
        self._candidates[candidate_id] = updated
        return updated

    async def set_candidate_status(self, candidate_id: str, status: CandidateStatus) -> Candidate | None:
        return await self.update_candidate(candidate_id, status=status)

    async def delete_candidate(self, candidate_id: str) -> bool:
        """Remove a candidate with its chunks and evaluation. Audit is kept."""
        existed = self._candidates.pop(candidate_id, None) is not None
        self._chunks.pop(candidate_id, None)
        self._evaluations.pop(candidate_id, None)
        return existed

    # --- chunks ------------------------------------------------------------

    async def save_chunks(self, candidate_id: str, chunks: list[Chunk]) -> None:
        self._chunks[candidate_id] = list(chunks)

    async def get_chunks(self, candidate_id: str) -> list[Chunk]:
        return list(self._chunks.get(candidate_id, []))

    # --- evaluations -------------------------------------------------------

    async def get_evaluation(self, candidate_id: str) -> EvaluationRecord | None:
        return self._evaluations.get(candidate_id)

    async def save_evaluation(
        self, candidate_id: str, evaluation: Evaluation, prompt_version: str = ""
    ) -> EvaluationRecord:
        """Store ``evaluation``, replacing any previous record whole."""
        record = EvaluationRecord(
            id=new_id(),
            candidate_id=candidate_id,
            evaluation=evaluation,
            prompt_version=prompt_version,
        )
        self._evaluations[candidate_id] = record
        return record

    async def update_evaluation(self, candidate_id: str, **changes: Any) -> EvaluationRecord | None:
        record = self._evaluations.get(candidate_id)
        if record is None:
            return None
        updated = record.model_copy(update=changes)
        self._evaluations[candidate_id] = updated
        return updated

    # --- audit -------------------------------------------------------------

    async def record_audit(self, candidate_id: str, action: str, metadata: dict | None = None) -> AuditEntry:
        entry = AuditEntry(id=new_id(), candidate_id=candidate_id, action=action, metadata=metadata or {})
        self._audit.append(entry)
        logger.debug("Audit %s for candidate %s", action, candidate_id)
        return entry

    async def get_audit_trail(self, candidate_id: str) -> list[AuditEntry]:
        """Entries for one candidate, oldest first."""
        return [e for e in self._audit if e.candidate_id == candidate_id]
