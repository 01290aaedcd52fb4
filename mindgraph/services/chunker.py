import logging
import math
import re
from typing import List

from mindgraph.core.config import settings

logger = logging.getLogger(__name__)

# A run of non-terminators closed by . ! or ?, or a trailing unterminated run
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+\s*|[^.!?]+$")


def split_sentences(text: str) -> List[str]:
    """
    Sentence units with their trailing whitespace kept, so that joining them
    back reproduces the source. Falls back to non-empty lines, then to the
    whole text as one unit.
    """
    if not text or not text.strip():
        return []
    sentences = _SENTENCE_RE.findall(text)
    if sentences:
        return sentences
    lines = [line + "\n" for line in text.split("\n") if line.strip()]
    return lines if lines else [text]


def chunk_text(text: str, chunk_size: int | None = None, overlap: float | None = None) -> list[str]:
    """
    Split text into sentence-bounded chunks of at most ``chunk_size`` chars.

    Every chunk after the first opens with the last ``max(1, floor(n * overlap))``
    sentences of the previous chunk. A sentence longer than ``chunk_size`` is
    never cut; it becomes an oversized chunk of its own.
    """
    chunk_size = chunk_size or settings.CHUNK_SIZE
    overlap = settings.CHUNK_OVERLAP if overlap is None else overlap

    sentences = split_sentences(text)
    if not sentences:
        return []

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    carried: list[str] = []
    carried_count = 0

    i = 0
    while i < len(sentences):
        sentence = sentences[i]
        if not current and carried:
            current = list(carried)
            current_len = sum(len(s) for s in carried)
            carried_count = len(carried)
            carried = []

        # A chunk must take at least one sentence beyond the carried overlap
        if len(current) <= carried_count or current_len + len(sentence) <= chunk_size:
            current.append(sentence)
            current_len += len(sentence)
            i += 1
            continue

        chunk = "".join(current).strip()
        if chunk:
            chunks.append(chunk)
        keep = max(1, math.floor(len(current) * overlap))
        carried = current[-keep:]
        current = []
        current_len = 0
        carried_count = 0

    if current:
        chunk = "".join(current).strip()
        if chunk:
            chunks.append(chunk)

    logger.info(f"[CHUNK] {len(sentences)} sentences → {len(chunks)} chunks")
    return chunks
