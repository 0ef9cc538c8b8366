"""
Splits long AI replies into Discord-sized messages on sentence boundaries.
"""
import re
from typing import List

DEFAULT_MAX_CHUNK_LENGTH = 1900  # headroom under Discord's 2000 character limit
# Segments keep their trailing whitespace, so chunks concatenate back losslessly.
SENTENCE_SEPARATOR = ""

# Whitespace that follows terminal punctuation marks a sentence boundary.
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])(\s+)")
_PART_MARKER = re.compile(r"^\[Part \d+/\d+\]\n")


def split_sentences(text: str) -> List[str]:
    """
    Split text into sentence-like segments. Text without ``. ! ?`` is one segment.

    Each segment carries the whitespace (spaces, newlines, blank lines) that
    follows it, so ``"".join(split_sentences(text)) == text``.
    """
    parts = _SENTENCE_BOUNDARY.split(text or "")
    segments = []
    for i in range(0, len(parts), 2):
        segment = parts[i] + (parts[i + 1] if i + 1 < len(parts) else "")
        if segment:
            segments.append(segment)
    return segments


def chunk(text: str, max_length: int = DEFAULT_MAX_CHUNK_LENGTH) -> List[str]:
    """
    Split ``text`` into ordered chunks of at most ``max_length`` characters.

    Segments are packed greedily. A segment that alone exceeds ``max_length``
    becomes its own oversized chunk rather than being cut mid-sentence. When
    more than one chunk results, each carries a ``[Part i/N]`` header line.
    """
    if not text or not text.strip():
        return [""]

    chunks: List[str] = []
    buffer = ""
    for segment in split_sentences(text):
        if buffer and len(buffer) + len(segment) > max_length:
            chunks.append(buffer)
            buffer = segment
        else:
            buffer += segment

    if buffer:
        chunks.append(buffer)

    total = len(chunks)
    if total == 1:
        return chunks
    return [f"[Part {i}/{total}]\n{c}" for i, c in enumerate(chunks, 1)]


def strip_part_marker(chunk_text: str) -> str:
    return _PART_MARKER.sub("", chunk_text, count=1)
