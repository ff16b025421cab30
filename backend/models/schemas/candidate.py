"""Jobs, candidates and audit entries held by the persistence layer."""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

CandidateStatus = Literal["pending", "evaluated", "invited", "rejected", "on_hold"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    id: str
    owner_id: str | None = None
    title: str = ""
    description: str = ""
    blueprint: dict[str, Any] | None = None  # structured requirements
    prompt_version: str = ""  # set when the blueprint was generated
    created_at: datetime = Field(default_factory=_now)


class Candidate(BaseModel):
    id: str
    job_id: str
    owner_id: str | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    cv_filename: str = ""
    cv_raw_text: str = ""
    profile: dict[str, Any] | None = None
    status: CandidateStatus = "pending"
    created_at: datetime = Field(default_factory=_now)


class AuditEntry(BaseModel):
    id: str
    candidate_id: str
    action: str
    metadata: dict[str, Any] = {}
    created_at: datetime = Field(default_factory=_now)
