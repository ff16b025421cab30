"""CV section segmentation and per-section metadata extraction."""

import re
from dataclasses import dataclass

from models.schemas.chunk import ChunkMetadata, SectionType

# Section header patterns and their canonical names.
# Order matters: the first section whose pattern matches a line wins.
SECTION_PATTERNS: dict[str, list[str]] = {
    "contact": [
        r"contact(?:\s+(?:information|info|details))?",
        r"personal\s+(?:information|details)",
    ],
    "summary": [
        r"(?:professional|executive|career)?\s*summary",
        r"(?:career|professional)?\s*objective",
        r"(?:professional\s+)?profile",
        r"about(?:\s*me)?",
    ],
    "experience": [
        r"(?:work|professional|employment)\s*(?:experience|history)",
        r"experience",
        r"employment",
        r"career\s*(?:history|path)",
    ],
    "education": [
        r"education(?:al)?\s*(?:background|qualifications|history)?",
        r"academic\s*(?:background|qualifications)?",
        r"qualifications",
    ],
    "skills": [
        r"(?:technical|core|key|professional)?\s*skills",
        r"(?:technical|core)?\s*(?:competencies|proficiencies|expertise)",
    ],
}

# Compile all patterns into a single whole-line regex per section
_COMPILED: dict[str, re.Pattern] = {}
for section, patterns in SECTION_PATTERNS.items():
    combined = "|".join(patterns)
    _COMPILED[section] = re.compile(
        rf"^[#*\s]*(?:{combined})\s*:?\s*$", re.IGNORECASE
    )


@dataclass(frozen=True)
class Section:
    section_type: SectionType
    text: str  # trimmed body
    start_char: int  # offset of the trimmed body in the source text
    end_char: int


def match_header(line: str) -> SectionType | None:
    """Return the section a header line opens, or None for body lines."""
    stripped = line.strip()
    if not stripped or len(stripped) > 60:
        return None
    for section_name, pattern in _COMPILED.items():
        if pattern.match(stripped):
            return section_name  # type: ignore[return-value]
    return None


def _trimmed(text: str, section_type: SectionType, start: int, end: int) -> Section:
    body = text[start:end]
    stripped = body.strip()
    lead = len(body) - len(body.lstrip())
    return Section(section_type, stripped, start + lead, start + lead + len(stripped))


def identify_sections(text: str, min_section_chars: int = 50) -> list[Section]:
    """Split normalized CV text into typed sections.

    Each header line starts a section whose body runs to the next header.
    Text before the first header is treated as contact details. Bodies shorter
    than ``min_section_chars`` are dropped as noise. Without any usable header
    the whole text becomes a single "other" section.
    """
    headers: list[tuple[SectionType, int, int]] = []  # (type, header_start, body_start)
    offset = 0
    for line in text.split("\n"):
        section_type = match_header(line)
        if section_type:
            headers.append((section_type, offset, min(offset + len(line) + 1, len(text))))
        offset += len(line) + 1

    spans: list[tuple[SectionType, int, int]] = []
    if headers:
        if headers[0][1] > 0:
            spans.append(("contact", 0, headers[0][1]))
        for i, (section_type, _, body_start) in enumerate(headers):
            body_end = headers[i + 1][1] if i + 1 < len(headers) else len(text)
            spans.append((section_type, body_start, body_end))

    sections = [
        s for s in (_trimmed(text, t, start, end) for t, start, end in spans)
        if len(s.text) >= min_section_chars
    ]

    if not sections and text.strip():
        sections.append(_trimmed(text, "other", 0, len(text)))
    return sections


# ---------------------------------------------------------------------------
# Metadata extraction
# ---------------------------------------------------------------------------

COMPANY_RE = re.compile(
    r"(?:\bCompany:[ \t]*|\bat[ \t]+|(?<!\S)@[ \t]?)"
    r"([A-Z][\w&.'\-]*(?:[ \t]+(?:&|[A-Z][\w&.'\-]*))*)"
)
ROLE_RE = re.compile(r"(?:Role|Title|Position):[ \t]*([^\n]+)", re.IGNORECASE)
# "Senior Engineer | Acme Corp | 2021 - Present"
PIPE_ROLE_RE = re.compile(r"^[ \t]*([^|\n]{2,80}?)[ \t]*\|[ \t]*([^|\n]{2,80}?)[ \t]*(?:\||$)", re.MULTILINE)

INSTITUTION_LABEL_RE = re.compile(
    r"(?:University|College|School|Institution):[ \t]*([^\n]+)", re.IGNORECASE
)
INSTITUTION_NAME_RE = re.compile(
    r"((?:[A-Z][\w&.'\-]*[ \t]+)*(?:University|College|Institute|School|Academy)"
    r"(?:[ \t]+of(?:[ \t]+[A-Z][\w&.'\-]*)+)?)"
)
DEGREE_LABEL_RE = re.compile(r"(?:Degree|Qualification):[ \t]*([^\n]+)", re.IGNORECASE)
DEGREE_LINE_RE = re.compile(
    r"^.*(?:\bph\.d\b|\bphd\b|\bdoctorate\b|\bmaster(?:'?s)?\b|\bbachelor(?:'?s)?\b"
    r"|\bassociate(?:'?s)?\s+degree\b|\bmba\b|\bb\.sc?\.|\bm\.sc?\.|\bb\.tech\b|\bm\.tech\b|\bb\.e\.).*$",
    re.IGNORECASE | re.MULTILINE,
)

_MAX_FIELD_LEN = 120


def _clean(value: str) -> str | None:
    value = value.strip(" \t|,;-").strip()
    return value[:_MAX_FIELD_LEN] if value else None


def extract_metadata(text: str, section_type: SectionType, candidate_id: str) -> ChunkMetadata:
    """Best-effort section hints. A field that doesn't match stays None."""
    meta = ChunkMetadata(candidate_id=candidate_id)

    if section_type == "experience":
        role_match = ROLE_RE.search(text)
        if role_match:
            meta.role = _clean(role_match.group(1))
        company_match = COMPANY_RE.search(text)
        if company_match:
            meta.company = _clean(company_match.group(1))
        pipe_match = PIPE_ROLE_RE.search(text)
        if pipe_match:
            meta.role = meta.role or _clean(pipe_match.group(1))
            meta.company = meta.company or _clean(pipe_match.group(2))

    elif section_type == "education":
        institution_match = INSTITUTION_LABEL_RE.search(text) or INSTITUTION_NAME_RE.search(text)
        if institution_match:
            meta.institution = _clean(institution_match.group(1))
        degree_match = DEGREE_LABEL_RE.search(text)
        if degree_match:
            meta.degree = _clean(degree_match.group(1))
        else:
            line_match = DEGREE_LINE_RE.search(text)
            if line_match:
                meta.degree = _clean(line_match.group(0))

    return meta
