"""Text helpers including word-boundary chunking with overlap."""

from __future__ import annotations

from typing import Iterator, List, Sequence, Tuple


def token_spans(
    tokens: Sequence[str], *, max_chars: int, overlap_fraction: float
) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` token ranges for overlapping chunks.

    A chunk grows while its space-joined length stays within ``max_chars``.
    A single token longer than ``max_chars`` becomes a chunk of its own.
    Each following chunk repeats trailing tokens of the previous one until
    about ``max_chars * overlap_fraction`` characters are covered. ``start``
    strictly increases between yields.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if not 0 <= overlap_fraction < 1:
        raise ValueError("overlap_fraction must be in [0, 1)")

    overlap_chars = int(max_chars * overlap_fraction)
    count = len(tokens)
    start = 0
    while start < count:
        length = 0
        end = start
        while end < count:
            add = len(tokens[end]) + (1 if end > start else 0)
            if length + add > max_chars:
                if end == start:
                    end += 1
                break
            length += add
            end += 1

        yield start, end
        if end >= count:
            return

        overlap_count = 0
        if overlap_chars > 0:
            covered = 0
            for k in range(end - 1, start - 1, -1):
                covered += len(tokens[k]) + (1 if overlap_count else 0)
                overlap_count += 1
                if covered >= overlap_chars:
                    break

        next_start = end - overlap_count
        if next_start <= start:
            next_start = end
        start = next_start


def chunk_text(text: str, *, max_chars: int = 10000, overlap_fraction: float = 0.2) -> List[str]:
    """Split text into overlapping chunks that never break a token.

    Whitespace between tokens is collapsed to a single space. Empty or
    whitespace-only input returns an empty list.
    """
    tokens = text.split()
    if not tokens:
        return []
    return [
        " ".join(tokens[start:end])
        for start, end in token_spans(
            tokens, max_chars=max_chars, overlap_fraction=overlap_fraction
        )
    ]


def preview(text: str, limit: int = 100) -> str:
    """Single-line preview of ``text`` for logs and tables."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[:limit].rstrip() + "..."
