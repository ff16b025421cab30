"""Canonical evaluation record produced by the output normalizer.

Every key is always present; nested sections default to empty lists or
objects of empty lists so consumers never need to null-check.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

Decision = Literal["yes", "maybe", "no"]
FinalDecision = Literal["invited", "rejected", "on_hold"]


class CriterionMatch(BaseModel):
    criterion: str
    weight: float = 0.0  # 0.0-1.0
    score: float = 0.0  # 0.0-1.0
    matched: bool = False
    evidence: list[dict[str, Any] | str] = []
    reasoning: str = ""
    sub_criteria: list[dict[str, Any]] = []


class RequirementsAnalysis(BaseModel):
    must_have: list[dict[str, Any]] = []
    nice_to_have: list[dict[str, Any]] = []


class ExperienceAnalysis(BaseModel):
    jd_requirement: str = ""
    candidate_years: float = 0.0
    calculated_from_cv: str = ""
    matches: bool = False
    gap_analysis: str = ""
    employment_gaps: list[Any] = []
    chunk_citations: list[str] = []
    detailed_education_analysis: list[dict[str, Any]] = []
    detailed_work_experience_analysis: list[dict[str, Any]] = []


class SkillComparison(BaseModel):
    skill: str = ""
    jd_requirement: str = ""
    candidate_level: str | None = None
    candidate_years: float = 0.0
    matches: bool = False
    evidence: dict[str, Any] | None = None
    verification: str = ""


class ExperienceComparison(BaseModel):
    jd_responsibility: str = ""
    candidate_experience: str = ""
    matches: bool = False
    gap: str = ""
    severity: str = ""
    evidence: dict[str, Any] | None = None


class ResumeQualityIssue(BaseModel):
    type: str = ""
    issue: str = ""
    location: str = ""
    severity: str = ""
    example: str = ""
    chunk_id: str = ""


class PortfolioLinks(BaseModel):
    linkedin: str | None = None
    github: str | None = None
    portfolio: str | None = None
    other_links: list[str] = []
    missing_expected: list[str] = []


class MatchingStrengths(BaseModel):
    skills_that_match: list[dict[str, Any]] = []
    experience_that_matches: list[dict[str, Any]] = []

    def is_empty(self) -> bool:
        return not (self.skills_that_match or self.experience_that_matches)


class MissingGaps(BaseModel):
    technology_gaps: list[str] = []
    experience_gaps: list[str] = []
    skill_gaps: list[str] = []
    other_gaps: list[str] = []

    def is_empty(self) -> bool:
        return not (self.technology_gaps or self.experience_gaps or self.skill_gaps or self.other_gaps)


class BrutalGapAnalysis(BaseModel):
    critical_gaps: list[Any] = []
    major_gaps: list[Any] = []
    moderate_gaps: list[Any] = []
    indirect_experience_analysis: list[Any] = []


class Evaluation(BaseModel):
    decision: Decision = "maybe"
    confidence: float = 0.5
    overall_match_score: float = 0.0
    criteria_matches: list[CriterionMatch] = []
    strengths: list[dict[str, Any]] = []
    concerns: list[dict[str, Any]] = []
    red_flags_found: list[dict[str, Any]] = []
    summary: str = ""
    recommended_interview_questions: list[str] = []

    # Enhanced sections
    jd_requirements_analysis: RequirementsAnalysis = RequirementsAnalysis()
    experience_analysis: ExperienceAnalysis = ExperienceAnalysis()
    skills_comparison: list[SkillComparison] = []
    professional_experience_comparison: list[ExperienceComparison] = []
    resume_quality_issues: list[ResumeQualityIssue] = []
    portfolio_links: PortfolioLinks = PortfolioLinks()
    detailed_comparison: list[dict[str, Any]] = []
    matching_strengths: MatchingStrengths = MatchingStrengths()
    missing_gaps: MissingGaps = MissingGaps()
    brutal_gap_analysis: BrutalGapAnalysis = BrutalGapAnalysis()
    jd_brutal_review: dict[str, Any] = {}
    company_fit_report: dict[str, Any] = {}
    adjacent_skill_inferences: list[dict[str, Any]] = []


class EvaluationRecord(BaseModel):
    """A stored evaluation. Replaced whole on re-evaluation, never merged."""
    id: str
    candidate_id: str
    evaluation: Evaluation
    prompt_version: str = ""
    final_decision: FinalDecision | None = None  # recruiter's call
    decided_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
