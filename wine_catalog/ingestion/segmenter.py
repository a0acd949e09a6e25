"""
Line Segmenter
==============

Splits a raw wine-list blob into candidate lines. Fragments shorter than
the minimum length are treated as noise (page numbers, stray symbols).
"""

from __future__ import annotations

from collections.abc import Iterator

from wine_catalog.core.schema import CandidateLine

DEFAULT_MIN_LENGTH = 4


def segment_lines(raw_text: str, min_length: int = DEFAULT_MIN_LENGTH) -> Iterator[CandidateLine]:
    """
    Yield trimmed candidate lines in input order.

    Args:
        raw_text: Pasted, OCR-extracted or uploaded wine-list text
        min_length: Fragments shorter than this are discarded

    Yields:
        CandidateLine with the trimmed text and its source line index
    """
    for index, line in enumerate(raw_text.splitlines()):
        text = line.strip()
        if len(text) < min_length:
            continue
        yield CandidateLine(text=text, index=index)
