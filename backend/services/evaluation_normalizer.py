"""Normalize raw LLM evaluation JSON into a canonical Evaluation.

The model's output is treated as untrusted and partial. normalize() is total
(any input yields a fully populated Evaluation) and idempotent (normalizing
its own output changes nothing).

Steps:
    1. keys:       camelCase → snake_case, legacy aliases → canonical names
    2. scalars:    decision/confidence/scores coerced, percentages → [0, 1]
    3. sections:   each nested section validated field by field, bad fields
                   fall back to defaults
    4. strengths:  matching_strengths / missing_gaps derived from the
                   comparison sections when the model left them empty
    5. criteria:   topped up to 4 with locally derived criteria
    6. overall:    weighted average of criteria unless the model gave one
"""

import logging
import math
import re
from typing import Any

from pydantic import BaseModel, ValidationError

from models.schemas.evaluation import (
    BrutalGapAnalysis,
    CriterionMatch,
    Evaluation,
    ExperienceAnalysis,
    ExperienceComparison,
    MatchingStrengths,
    MissingGaps,
    PortfolioLinks,
    RequirementsAnalysis,
    ResumeQualityIssue,
    SkillComparison,
)

logger = logging.getLogger(__name__)

MIN_CRITERIA = 4
MATCH_THRESHOLD = 0.7
DEFAULT_CRITERION_WEIGHT = 0.25
RESUME_ISSUE_CEILING = 10

# Weights for locally derived criteria. Kept for compatibility with stored
# evaluations; not a validated business rule.
SKILLS_MATCH_WEIGHT = 0.35
RESPONSIBILITIES_MATCH_WEIGHT = 0.35
EXPERIENCE_YEARS_WEIGHT = 0.2
RESUME_QUALITY_WEIGHT = 0.1

KEY_ALIASES = {
    "requirements_analysis": "jd_requirements_analysis",
    "red_flags": "red_flags_found",
    "recommended_questions": "recommended_interview_questions",
    "interview_questions": "recommended_interview_questions",
}

DECISIONS = ("yes", "maybe", "no")

# Deepest known key is criteria_matches[i].sub_criteria[j].<key>; keys below
# this are free-form and left as the model wrote them.
MAX_KEY_DEPTH = 6
# Containers nested deeper than this are dropped (replaced with None)
MAX_NESTING_DEPTH = 32

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")


# ---------------------------------------------------------------------------
# Key handling
# ---------------------------------------------------------------------------

def to_snake_case(key: str) -> str:
    return _CAMEL_RE.sub(r"_\1", key).lower()


def _snake_keys(value: Any, depth: int = 0) -> Any:
    if isinstance(value, (dict, list)) and depth >= MAX_NESTING_DEPTH:
        return None
    if isinstance(value, dict):
        rename = depth < MAX_KEY_DEPTH
        return {
            to_snake_case(k) if rename and isinstance(k, str) else k: _snake_keys(v, depth + 1)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_snake_keys(v, depth + 1) for v in value]
    return value


def canonical_keys(raw: dict) -> dict:
    """snake_case every key and fold legacy aliases into canonical names."""
    data = _snake_keys(raw)
    for alias, canonical in KEY_ALIASES.items():
        if alias in data:
            value = data.pop(alias)
            data.setdefault(canonical, value)
    return data


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------

def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


def to_unit(value: Any, default: float = 0.0) -> float:
    """Coerce to [0, 1]. Values in (1, 100] are read as percentages."""
    number = _number(value)
    if number is None:
        return default
    if 1 < number <= 100:
        number /= 100
    return min(1.0, max(0.0, number))


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _is_object(value: Any) -> bool:
    """A JSON object: a dict whose keys are all strings."""
    return isinstance(value, dict) and all(isinstance(k, str) for k in value)


def _dict(value: Any) -> dict:
    return value if _is_object(value) else {}


def _decision(value: Any) -> str:
    decision = value.strip().lower() if isinstance(value, str) else ""
    return decision if decision in DECISIONS else "maybe"


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def _coerce_model(model_cls: type[BaseModel], data: Any) -> BaseModel:
    """Validate ``data`` field by field, dropping fields that don't fit."""
    if isinstance(data, model_cls):
        return data
    if not isinstance(data, dict):
        return model_cls()
    clean = {}
    for name in model_cls.model_fields:
        if name not in data:
            continue
        try:
            model_cls.model_validate({name: data[name]})
        except ValidationError:
            logger.debug("Dropping invalid %s.%s", model_cls.__name__, name)
            continue
        clean[name] = data[name]
    return model_cls.model_validate(clean)


def _coerce_models(model_cls: type[BaseModel], items: Any) -> list:
    return [_coerce_model(model_cls, item) for item in _list(items) if isinstance(item, dict)]


def _wrap_evidence(items: Any) -> list:
    """Comparison items sometimes carry evidence as a bare quote."""
    wrapped = []
    for item in _list(items):
        if isinstance(item, dict) and isinstance(item.get("evidence"), str):
            item = {**item, "evidence": {"quote": item["evidence"]}}
        wrapped.append(item)
    return wrapped


def _points(items: Any) -> list[dict]:
    points = []
    for item in _list(items):
        if isinstance(item, str):
            points.append({"point": item, "evidence": ""})
        elif _is_object(item):
            points.append(item)
    return points


def _red_flags(items: Any) -> list[dict]:
    flags = []
    for item in _list(items):
        if isinstance(item, str):
            flags.append({"flag": item, "evidence": "", "severity": "medium"})
        elif _is_object(item):
            flags.append(item)
    return flags


def _questions(items: Any) -> list[str]:
    questions = []
    for item in _list(items):
        if isinstance(item, str):
            questions.append(item)
        elif isinstance(item, dict) and isinstance(item.get("question"), str):
            questions.append(item["question"])
    return questions


def _dicts(items: Any) -> list[dict]:
    return [item for item in _list(items) if _is_object(item)]


def _evidence(value: Any) -> list:
    if isinstance(value, str):
        return [value] if value else []
    return [item for item in _list(value) if isinstance(item, str) or _is_object(item)]


# ---------------------------------------------------------------------------
# Derived sections
# ---------------------------------------------------------------------------

def derive_matching_strengths(
    skills: list[SkillComparison],
    experience: list[ExperienceComparison],
) -> MatchingStrengths:
    return MatchingStrengths(
        skills_that_match=[
            {
                "skill": s.skill,
                "candidate_level": s.candidate_level,
                "candidate_years": s.candidate_years,
                "verification": s.verification,
            }
            for s in skills if s.matches and s.skill
        ],
        experience_that_matches=[
            {
                "jd_responsibility": e.jd_responsibility,
                "candidate_experience": e.candidate_experience,
            }
            for e in experience if e.matches and e.jd_responsibility
        ],
    )


def derive_missing_gaps(
    skills: list[SkillComparison],
    experience: list[ExperienceComparison],
    experience_analysis: ExperienceAnalysis,
    requirements: RequirementsAnalysis,
) -> MissingGaps:
    technology_gaps, skill_gaps, experience_gaps, other_gaps = [], [], [], []

    for s in skills:
        if s.matches or not s.skill:
            continue
        # Never used at all vs. used below the required level
        if s.candidate_level is None and s.candidate_years == 0:
            technology_gaps.append(s.skill)
        else:
            skill_gaps.append(s.skill)

    for e in experience:
        if not e.matches and (e.gap or e.jd_responsibility):
            experience_gaps.append(e.gap or e.jd_responsibility)

    if experience_analysis.gap_analysis and not experience_analysis.matches and experience_analysis.jd_requirement:
        experience_gaps.append(experience_analysis.gap_analysis)

    for req in requirements.must_have:
        if req.get("met") is False and isinstance(req.get("requirement"), str):
            other_gaps.append(req["requirement"])

    return MissingGaps(
        technology_gaps=technology_gaps,
        experience_gaps=experience_gaps,
        skill_gaps=skill_gaps,
        other_gaps=other_gaps,
    )


# ---------------------------------------------------------------------------
# Criteria
# ---------------------------------------------------------------------------

def _criterion(item: Any, position: int) -> CriterionMatch | None:
    if isinstance(item, str):
        item = {"criterion": item}
    if not isinstance(item, dict):
        return None
    score = to_unit(item.get("score"))
    matched = item.get("matched")
    return CriterionMatch(
        criterion=_text(item.get("criterion") or item.get("name")) or f"Criterion {position + 1}",
        weight=to_unit(item.get("weight"), DEFAULT_CRITERION_WEIGHT),
        score=score,
        matched=matched if isinstance(matched, bool) else score >= MATCH_THRESHOLD,
        evidence=_evidence(item.get("evidence")),
        reasoning=_text(item.get("reasoning")),
        sub_criteria=_dicts(item.get("sub_criteria")),
    )


def _ratio_criterion(name: str, weight: float, matched: int, total: int, what: str) -> CriterionMatch:
    score = matched / total if total else 0.0
    return CriterionMatch(
        criterion=name,
        weight=weight,
        score=round(score, 4),
        matched=score >= MATCH_THRESHOLD,
        evidence=[f"{matched}/{total} {what} matched"] if total else [],
        reasoning=f"Derived from {what} comparison",
    )


def synthesize_criteria(data: dict, evaluation_sections: dict) -> list[CriterionMatch]:
    """Criteria derived from the comparison sections, in fixed order."""
    skills: list[SkillComparison] = evaluation_sections["skills_comparison"]
    experience: list[ExperienceComparison] = evaluation_sections["professional_experience_comparison"]
    analysis: ExperienceAnalysis = evaluation_sections["experience_analysis"]

    if analysis.matches:
        years_score = 1.0
    elif analysis.candidate_years > 0:
        years_score = 0.5
    else:
        years_score = 0.0

    # An absent issue list is no evidence of quality
    if isinstance(data.get("resume_quality_issues"), list):
        issues = len(evaluation_sections["resume_quality_issues"])
        quality_score = 1.0 - min(1.0, issues / RESUME_ISSUE_CEILING)
    else:
        quality_score = 0.0

    return [
        _ratio_criterion(
            "SkillsMatch", SKILLS_MATCH_WEIGHT,
            sum(1 for s in skills if s.matches), len(skills), "skills",
        ),
        _ratio_criterion(
            "ResponsibilitiesMatch", RESPONSIBILITIES_MATCH_WEIGHT,
            sum(1 for e in experience if e.matches), len(experience), "responsibilities",
        ),
        CriterionMatch(
            criterion="ExperienceYears",
            weight=EXPERIENCE_YEARS_WEIGHT,
            score=years_score,
            matched=years_score >= MATCH_THRESHOLD,
            reasoning="Derived from experience analysis",
        ),
        CriterionMatch(
            criterion="ResumeQuality",
            weight=RESUME_QUALITY_WEIGHT,
            score=round(quality_score, 4),
            matched=quality_score >= MATCH_THRESHOLD,
            reasoning="Derived from resume quality issues",
        ),
    ]


def merge_criteria(provided: list[CriterionMatch], synthesized: list[CriterionMatch]) -> list[CriterionMatch]:
    """Top ``provided`` up to MIN_CRITERIA without repeating a name."""
    merged = list(provided)
    names = {c.criterion.strip().lower() for c in provided}
    for criterion in synthesized:
        if len(merged) >= MIN_CRITERIA:
            break
        if criterion.criterion.lower() in names:
            continue
        merged.append(criterion)
        names.add(criterion.criterion.lower())
    return merged


def weighted_score(criteria: list[CriterionMatch]) -> float:
    total_weight = sum(c.weight for c in criteria)
    if total_weight <= 0:
        return 0.0
    return round(sum(c.weight * c.score for c in criteria) / total_weight, 4)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def normalize(raw: Any) -> Evaluation:
    """Turn any model output into a complete, consumer-safe Evaluation."""
    if isinstance(raw, Evaluation):
        raw = raw.model_dump()
    data = canonical_keys(raw) if isinstance(raw, dict) else {}

    sections = {
        "jd_requirements_analysis": _coerce_model(RequirementsAnalysis, data.get("jd_requirements_analysis")),
        "experience_analysis": _coerce_model(ExperienceAnalysis, data.get("experience_analysis")),
        "skills_comparison": _coerce_models(SkillComparison, _wrap_evidence(data.get("skills_comparison"))),
        "professional_experience_comparison": _coerce_models(
            ExperienceComparison, _wrap_evidence(data.get("professional_experience_comparison"))
        ),
        "resume_quality_issues": _coerce_models(ResumeQualityIssue, data.get("resume_quality_issues")),
        "portfolio_links": _coerce_model(PortfolioLinks, data.get("portfolio_links")),
        "brutal_gap_analysis": _coerce_model(BrutalGapAnalysis, data.get("brutal_gap_analysis")),
    }

    matching = _coerce_model(MatchingStrengths, data.get("matching_strengths"))
    if matching.is_empty():
        matching = derive_matching_strengths(
            sections["skills_comparison"], sections["professional_experience_comparison"]
        )
    gaps = _coerce_model(MissingGaps, data.get("missing_gaps"))
    if gaps.is_empty():
        gaps = derive_missing_gaps(
            sections["skills_comparison"],
            sections["professional_experience_comparison"],
            sections["experience_analysis"],
            sections["jd_requirements_analysis"],
        )

    provided = [
        c for c in (_criterion(item, i) for i, item in enumerate(_list(data.get("criteria_matches"))))
        if c is not None
    ]
    criteria = provided
    if len(provided) < MIN_CRITERIA:
        criteria = merge_criteria(provided, synthesize_criteria(data, sections))

    overall = to_unit(data.get("overall_match_score"))
    if overall == 0:
        overall = weighted_score(criteria)

    try:
        return Evaluation(
            decision=_decision(data.get("decision")),
            confidence=to_unit(data.get("confidence"), 0.5),
            overall_match_score=overall,
            criteria_matches=criteria,
            strengths=_points(data.get("strengths")),
            concerns=_points(data.get("concerns")),
            red_flags_found=_red_flags(data.get("red_flags_found")),
            summary=_text(data.get("summary")),
            recommended_interview_questions=_questions(data.get("recommended_interview_questions")),
            matching_strengths=matching,
            missing_gaps=gaps,
            detailed_comparison=_dicts(data.get("detailed_comparison")),
            jd_brutal_review=_dict(data.get("jd_brutal_review")),
            company_fit_report=_dict(data.get("company_fit_report")),
            adjacent_skill_inferences=_dicts(data.get("adjacent_skill_inferences")),
            **sections,
        )
    except ValidationError as e:
        logger.warning("Evaluation normalization fell back to defaults: %s", e)
        return _fallback_evaluation(data)


def _empty_sections() -> dict:
    return {
        "experience_analysis": ExperienceAnalysis(),
        "skills_comparison": [],
        "professional_experience_comparison": [],
        "resume_quality_issues": [],
    }


def _fallback_evaluation(data: dict) -> Evaluation:
    """Scalars the model gave plus the zero-score synthesized criteria."""
    return Evaluation(
        decision=_decision(data.get("decision")),
        confidence=to_unit(data.get("confidence"), 0.5),
        criteria_matches=merge_criteria([], synthesize_criteria({}, _empty_sections())),
        summary=_text(data.get("summary")),
    )


def is_complete(evaluation: Evaluation) -> bool:
    """Whether a stored evaluation can be served without re-running.

    Incomplete means no criteria, or neither strengths nor gaps were found.
    A genuinely unremarkable candidate is indistinguishable from missing
    data here and will be re-evaluated.
    """
    if not evaluation.criteria_matches:
        return False
    return not (evaluation.missing_gaps.is_empty() and evaluation.matching_strengths.is_empty())
