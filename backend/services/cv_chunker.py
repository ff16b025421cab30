"""CV chunking: turn raw CV text into overlapping, section-tagged chunks.

Flow:
    raw text
      ├─ normalize line endings
      ├─ identify_sections()      → typed sections (or one "other" section)
      ├─ window each section      → ~chunk_size pieces, chunk_overlap shared
      │     end snapped back to paragraph > sentence > newline boundary
      └─ extract_metadata()       → company/role, institution/degree hints

Falls back to windowing the raw text as "other" when sections yield nothing.
Never raises.
"""

import logging
import re

from config import ChunkingConfig
from models.schemas.chunk import Chunk, SectionType
from services.section_parser import extract_metadata, identify_sections

logger = logging.getLogger(__name__)

# Sentence-ending punctuation followed by whitespace
_SENTENCE_END_RE = re.compile(r"[.!?](?=\s)")


def normalize_text(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


class CVChunker:
    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk_cv(self, raw_text: str, candidate_id: str) -> list[Chunk]:
        text = normalize_text(raw_text or "")

        chunks: list[Chunk] = []
        for section in identify_sections(text, self.config.min_section_chars):
            chunks.extend(self._window(
                text, section.start_char, section.end_char,
                section.section_type, candidate_id, len(chunks),
            ))

        if not chunks:
            chunks = self._window(text, 0, len(text), "other", candidate_id, 0)

        logger.debug("Chunked CV for candidate %s into %d chunks", candidate_id, len(chunks))
        return chunks

    # ------------------------------------------------------------------
    # Windowing
    # ------------------------------------------------------------------

    def _snap_end(self, text: str, start: int, end: int) -> int:
        """Move a window end back to a natural boundary past the midpoint."""
        midpoint = start + self.config.chunk_size // 2

        paragraph = text.rfind("\n\n", start, end)
        if paragraph > midpoint:
            return paragraph + 2

        sentence_end = -1
        for match in _SENTENCE_END_RE.finditer(text, midpoint + 1, min(end + 1, len(text))):
            if match.start() < end:
                sentence_end = match.start()
        if sentence_end > midpoint:
            return sentence_end + 1

        newline = text.rfind("\n", start, end)
        if newline > midpoint:
            return newline + 1

        return end

    def _window(
        self,
        text: str,
        start: int,
        end: int,
        section_type: SectionType,
        candidate_id: str,
        first_index: int,
    ) -> list[Chunk]:
        """Window text[start:end] into chunks with offsets into ``text``."""
        size = self.config.chunk_size
        overlap = self.config.chunk_overlap
        min_size = self.config.min_chunk_size

        chunks: list[Chunk] = []
        position = start
        while position < end:
            window_end = min(position + size, end)
            if window_end < end:
                window_end = self._snap_end(text, position, window_end)

            is_final = window_end >= end
            piece = text[position:window_end].strip()

            if len(piece) < min_size and not is_final:
                # Too small: merge forward to the next paragraph break, or drop
                next_break = text.find("\n\n", window_end, end)
                if next_break != -1 and next_break < position + int(size * 1.5):
                    window_end = next_break + 2
                    piece = text[position:window_end].strip()
                    is_final = window_end >= end
                if len(piece) < min_size and not is_final:
                    position = window_end
                    continue

            if piece:
                chunks.append(Chunk(
                    text=piece,
                    index=first_index + len(chunks),
                    section_type=section_type,
                    start_char=position,
                    end_char=window_end,
                    metadata=extract_metadata(piece, section_type, candidate_id),
                ))

            if is_final:
                break
            position = max(window_end - overlap, position + 1)

        return chunks


_default_chunker = CVChunker()


def chunk_cv(raw_text: str, candidate_id: str) -> list[Chunk]:
    """Chunk CV text with the default sizes (800 chars, 100 overlap)."""
    return _default_chunker.chunk_cv(raw_text, candidate_id)
