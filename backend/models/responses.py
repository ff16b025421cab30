from datetime import datetime

from pydantic import BaseModel

from models.schemas.candidate import CandidateStatus


class HealthResponse(BaseModel):
    status: str = "ok"
    gemini_configured: bool = False
    embedding_provider: str = ""


class CandidateSummary(BaseModel):
    id: str
    job_id: str
    name: str | None = None
    email: str | None = None
    cv_filename: str = ""
    status: CandidateStatus = "pending"
    chunk_count: int = 0
    created_at: datetime


class ProfileResponse(BaseModel):
    candidate_id: str
    profile: dict = {}
