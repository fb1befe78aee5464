"""
Text processing for RAG: cleaning and chunking.

Cleaning reduces noise and encoding inconsistencies so embeddings and retrieval
focus on content. Chunk quality directly impacts retrieval accuracy.
"""

import unicodedata

from orchestrator.core.config import CHUNK_OVERLAP, CHUNK_SIZE, MIN_CHUNK_LENGTH

SENTENCE_BOUNDARIES = (". ", "! ", "? ")


def clean_text(text: str) -> str:
    """
    Normalize and clean raw document text: NFKC unicode, stripped lines,
    consecutive duplicate lines collapsed, at most one blank line between paragraphs.
    """
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize("NFKC", text)
    lines = [line.strip() for line in text.splitlines()]
    deduped: list[str] = []
    for line in lines:
        if deduped and deduped[-1] == line:
            continue
        deduped.append(line)
    result: list[str] = []
    for line in deduped:
        if line == "":
            if result and result[-1] != "":
                result.append("")
        else:
            result.append(line)
    return "\n".join(result).strip()


def _cut_point(window: str) -> int:
    """
    Length of the window to keep: just past the last sentence boundary when that
    boundary lies beyond half the window, else the whole window.
    """
    boundary = max(window.rfind(b) for b in SENTENCE_BOUNDARIES)
    if boundary > len(window) * 0.5:
        return boundary + 1
    return len(window)


def chunk_text(
    text: str,
    max_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
    min_length: int = MIN_CHUNK_LENGTH,
) -> list[str]:
    """
    Split text into overlapping windows of at most max_size characters.

    Each window (except the last) is cut at its last sentence boundary if that
    falls in the second half; the next window starts overlap characters before
    the cut. Segments shorter than min_length after stripping are dropped.
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")
    if overlap < 0 or overlap >= max_size:
        raise ValueError("overlap must be in [0, max_size)")
    if not text or not text.strip():
        return []

    chunks: list[str] = []
    start = 0
    length = len(text)
    while start < length:
        end = min(start + max_size, length)
        if end < length:
            end = start + _cut_point(text[start:end])
        segment = text[start:end].strip()
        if len(segment) >= min_length:
            chunks.append(segment)
        if end >= length:
            break
        start = max(end - overlap, start + 1)
    return chunks
