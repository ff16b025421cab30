"""CV chunks: retrieval units derived from a candidate's raw CV text."""

from typing import Literal

from pydantic import BaseModel, Field

SectionType = Literal["experience", "education", "skills", "summary", "contact", "other"]


class ChunkMetadata(BaseModel):
    """Section-specific hints extracted opportunistically; absence is valid."""
    candidate_id: str = ""
    company: str | None = None
    role: str | None = None
    institution: str | None = None
    degree: str | None = None


class Chunk(BaseModel):
    text: str
    index: int
    section_type: SectionType = "other"
    start_char: int  # offset into the normalized CV text
    end_char: int  # exclusive
    metadata: ChunkMetadata = ChunkMetadata()


class RetrievedChunk(Chunk):
    """A chunk plus its relevance to a query.

    1.0 is also used as a sentinel when no real ranking was available.
    """
    relevance_score: float = Field(default=1.0, ge=0.0, le=1.0)
