"""
Cheap Extractor
===============

Regex-only extraction of a wine name and vintage from a single line.
It never calls a network service and never fails, which makes it the
fallback whenever the knowledge service is unavailable.
"""

from __future__ import annotations

import re

from wine_catalog.core.enums import ExtractionSource
from wine_catalog.core.schema import CandidateLine, ExtractedWine

# Four-digit years from 1900 to 2099, optionally wrapped in parentheses
VINTAGE_PATTERN = re.compile(r"\(\s*((?:19|20)\d{2})\s*\)|\b((?:19|20)\d{2})\b")

# Punctuation that separates a vintage from the rest of the entry
SEPARATOR_CHARS = " \t,.;:-–—/|"

_WHITESPACE = re.compile(r"\s{2,}")

# OCR can merge a whole page into one line
MAX_NAME_LENGTH = 200

# Fallback values are guesses; anything the knowledge service says wins
FALLBACK_CONFIDENCE: dict[str, float] = {
    "name": 0.40,
    "vintage": 0.60,
}


class CheapExtractor:
    """Pulls a name and optional vintage out of a line with regexes."""

    source = ExtractionSource.FALLBACK

    def __init__(self, confidences: dict[str, float] | None = None) -> None:
        self.confidences = confidences or FALLBACK_CONFIDENCE

    def extract(self, line: CandidateLine) -> ExtractedWine:
        """
        Extract name and vintage from a candidate line.

        The first year found becomes the vintage. The text before it is
        the name, since what follows is usually region, size or price;
        a line that starts with its year uses the text after it instead.
        Without a year, the whole line is the name.
        """
        text = line.text.strip()
        name, vintage = text, None

        match = VINTAGE_PATTERN.search(text)
        if match:
            vintage = match.group(1) or match.group(2)
            before = text[: match.start()].strip(SEPARATOR_CHARS)
            after = text[match.end() :].strip(SEPARATOR_CHARS)
            name = before or after or text

        name = _WHITESPACE.sub(" ", name)
        if len(name) > MAX_NAME_LENGTH:
            name = name[:MAX_NAME_LENGTH].rsplit(" ", 1)[0]

        return ExtractedWine.from_values(
            {"name": name, "vintage": vintage},
            source=self.source,
            confidences=self.confidences,
            line_index=line.index,
        )
