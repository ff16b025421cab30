"""Pydantic contracts shared across the evaluation pipeline."""

from models.schemas.candidate import AuditEntry, Candidate, Job
from models.schemas.chunk import Chunk, ChunkMetadata, RetrievedChunk
from models.schemas.evaluation import CriterionMatch, Evaluation, EvaluationRecord, FinalDecision

__all__ = [
    "AuditEntry",
    "Candidate",
    "Job",
    "Chunk",
    "ChunkMetadata",
    "RetrievedChunk",
    "CriterionMatch",
    "Evaluation",
    "EvaluationRecord",
    "FinalDecision",
]
