from typing import Any

from pydantic import BaseModel, Field

from models.schemas.evaluation import FinalDecision


class JobCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=10000, description="Job description text")
    blueprint: dict[str, Any] | None = Field(
        None, description="Structured requirements the candidate is evaluated against"
    )


class CandidateCreateRequest(BaseModel):
    cv_text: str = Field(..., min_length=1, max_length=200000, description="Plain text CV content")
    cv_filename: str = Field("", max_length=255)
    name: str | None = None
    email: str | None = None


class DecisionUpdateRequest(BaseModel):
    decision: FinalDecision = Field(..., description="Recruiter's final call on the candidate")
