"""Sentence chunker - deterministic text splitting for embedding."""

import re

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def split_into_chunks(text: str, *, max_chars: int = 800) -> list[str]:
    """Split text into sentence-sized chunks, one embedding each.

    Pure function with no I/O or randomness.

    Args:
        text: Raw resource or message text
        max_chars: Hard cap per chunk; longer sentences are cut at word boundaries

    Returns:
        Ordered, stripped, non-empty chunks. The list index is the chunk index.

    Strategy:
        1. Collapse all whitespace (newlines included) to single spaces
        2. Split after sentence terminators (. ! ?)
        3. Drop empty pieces and pieces made only of punctuation
        4. Cut any piece longer than max_chars
    """
    if max_chars < 1:
        raise ValueError("max_chars must be positive")

    normalized = _WHITESPACE.sub(" ", text).strip()
    if not normalized:
        return []

    chunks: list[str] = []
    for sentence in _SENTENCE_END.split(normalized):
        sentence = sentence.strip()
        if not sentence.strip(".!? "):
            continue

        if len(sentence) <= max_chars:
            chunks.append(sentence)
        else:
            chunks.extend(_cut(sentence, max_chars))

    return chunks


def _cut(sentence: str, max_chars: int) -> list[str]:
    """Cut an over-long sentence, preferring the last space before the cap."""
    pieces: list[str] = []
    rest = sentence

    while len(rest) > max_chars:
        cut_at = rest.rfind(" ", 0, max_chars + 1)
        if cut_at <= 0:
            cut_at = max_chars
        pieces.append(rest[:cut_at].strip())
        rest = rest[cut_at:].strip()

    if rest:
        pieces.append(rest)

    return pieces
