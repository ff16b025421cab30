"""All prompt templates for Gemini API calls."""

import json

from models.schemas.chunk import RetrievedChunk

# Bumped whenever a template changes shape; stored on every evaluation record
PROMPT_VERSION = "v1.0"

CHUNK_SEPARATOR = "\n\n---\n\n"


def format_chunks(chunks: list[RetrievedChunk]) -> str:
    """Render retrieved chunks as citable context blocks."""
    return CHUNK_SEPARATOR.join(
        f"[Chunk {c.index}] (Section: {c.section_type}, Score: {c.relevance_score:.3f}):\n{c.text}"
        for c in chunks
    )


def truncate_cv_text(cv_text: str, max_chars: int) -> str:
    if len(cv_text) <= max_chars:
        return cv_text
    return f"{cv_text[:max_chars]}\n\n[TRUNCATED: CV text exceeded {max_chars} characters]"


def build_evaluation_prompt(blueprint: dict, profile: dict, cv_text: str) -> str:
    """Candidate evaluation against a job blueprint.

    ``cv_text`` is either formatted chunk context or the (truncated) raw CV.
    """
    return f"""You are a senior technical recruiter performing a rigorous, evidence-based
candidate evaluation. Be honest and specific: every claim must cite the CV.

JOB BLUEPRINT:
---
{json.dumps(blueprint, indent=2)}
---

CANDIDATE PROFILE (structured, may be empty):
---
{json.dumps(profile, indent=2)}
---

CV EVIDENCE:
---
{cv_text}
---

SCORING RULES:
- Every score, weight and confidence is a number between 0.0 and 1.0.
- Criterion weights should sum to 1.0. A criterion is matched when score >= 0.7.
- decision is "yes" (invite), "maybe" (needs review) or "no" (reject).
- Cite chunks as "Chunk N" where chunk markers are present.
- Do not invent experience the CV does not show.

Respond with ONLY valid JSON (no markdown, no code fences) in this exact structure:
{{
  "decision": "yes" | "maybe" | "no",
  "confidence": <0.0-1.0>,
  "overall_match_score": <0.0-1.0>,
  "criteria_matches": [
    {{"criterion": "<name>", "weight": <0.0-1.0>, "score": <0.0-1.0>, "matched": <bool>,
      "evidence": [<quotes from the CV>], "reasoning": "<why>"}}
  ],
  "strengths": [{{"point": "<strength>", "evidence": "<quote>"}}],
  "concerns": [{{"point": "<concern>", "evidence": "<quote or missing requirement>"}}],
  "red_flags_found": [{{"flag": "<issue>", "evidence": "<quote>", "severity": "low|medium|high"}}],
  "summary": "<3-4 sentence assessment>",
  "recommended_interview_questions": [<3-5 targeted questions>],
  "jd_requirements_analysis": {{
    "must_have": [{{"requirement": "<text>", "met": <bool>, "evidence": "<quote>"}}],
    "nice_to_have": [{{"requirement": "<text>", "met": <bool>, "evidence": "<quote>"}}]
  }},
  "experience_analysis": {{
    "jd_requirement": "<e.g. 5+ years>", "candidate_years": <number>,
    "calculated_from_cv": "<how the years were counted>", "matches": <bool>,
    "gap_analysis": "<text>", "employment_gaps": []
  }},
  "skills_comparison": [
    {{"skill": "<name>", "jd_requirement": "<required level>", "candidate_level": "<level or null>",
      "candidate_years": <number>, "matches": <bool>, "verification": "<how verified>"}}
  ],
  "professional_experience_comparison": [
    {{"jd_responsibility": "<text>", "candidate_experience": "<text>", "matches": <bool>,
      "gap": "<text>", "severity": "low|medium|high"}}
  ],
  "resume_quality_issues": [
    {{"type": "<category>", "issue": "<text>", "location": "<section>", "severity": "low|medium|high"}}
  ],
  "portfolio_links": {{"linkedin": null, "github": null, "portfolio": null, "other_links": [], "missing_expected": []}},
  "matching_strengths": {{"skills_that_match": [], "experience_that_matches": []}},
  "missing_gaps": {{"technology_gaps": [], "experience_gaps": [], "skill_gaps": [], "other_gaps": []}}
}}"""


def build_profile_prompt(cv_text: str, chunks: list[RetrievedChunk]) -> str:
    """Structured profile extraction, citing chunks when retrieval produced any."""
    if chunks:
        evidence = format_chunks(chunks)
        citation_rule = 'For every skill, set "chunk_index" to the chunk it was found in.'
    else:
        evidence = cv_text
        citation_rule = 'Set "chunk_index" to null.'

    return f"""You are an expert CV parser. Extract a structured candidate profile.

CV CONTENT:
---
{evidence}
---

RULES:
- Only use information present in the CV content. Use null for unknown scalars.
- {citation_rule}

Respond with ONLY valid JSON (no markdown, no code fences) in this exact structure:
{{
  "name": "<full name or null>",
  "email": "<email or null>",
  "phone": "<phone or null>",
  "location": "<city, country or null>",
  "summary": "<1-2 sentence professional summary>",
  "total_years_experience": <number>,
  "skills": [{{"skill": "<name>", "level": "<beginner|intermediate|advanced|expert>", "chunk_index": <int or null>}}],
  "experience": [{{"company": "<name>", "role": "<title>", "start": "<date>", "end": "<date or present>", "highlights": []}}],
  "education": [{{"institution": "<name>", "degree": "<degree>", "year": "<year or null>"}}],
  "certifications": [],
  "links": []
}}"""


def build_blueprint_prompt(job_description: str) -> str:
    """Job description → structured blueprint used for every evaluation of the job."""
    return f"""You are an expert technical recruiter. Turn the job description below into a
structured hiring blueprint.

JOB DESCRIPTION:
---
{job_description}
---

RULES:
- Only use requirements stated or clearly implied by the description.
- Mark a skill "must_have" only when the description treats it as required.
- evaluation_criteria weights are numbers between 0.0 and 1.0 that sum to 1.0.
- Use null for unknown numbers and [] for empty lists.

Respond with ONLY valid JSON (no markdown, no code fences) in this exact structure:
{{
  "role_title": "<title>",
  "department": "<department or null>",
  "seniority_level": "<junior|mid|senior|lead|principal or null>",
  "required_skills": [{{"skill": "<name>", "priority": "must_have" | "nice_to_have", "years_preferred": <number or null>}}],
  "experience_range": {{"min_years": <number or null>, "max_years": <number or null>}},
  "responsibilities": [<responsibility>],
  "qualifications": [<qualification>],
  "red_flags": [<what would disqualify a candidate>],
  "evaluation_criteria": [{{"criterion": "<name>", "weight": <0.0-1.0>}}]
}}"""
