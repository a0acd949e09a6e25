"""
Dedup Key Module
================

Derives the canonical catalog key from (name, vintage, producer) so that
re-ingesting the same wine with different capitalization or spacing
resolves to the same record.
"""

from __future__ import annotations

import re

KEY_SEPARATOR = "|"

_WHITESPACE = re.compile(r"\s+")


def normalize_key_part(value: str | None) -> str:
    """Lowercase, trim and collapse internal whitespace. None becomes ''."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip().lower()


def make_dedup_key(name: str, vintage: str | None = None, producer: str | None = None) -> str:
    """
    Build the dedup key for a wine.

    >>> make_dedup_key("Opus One", "2018", "Opus") == make_dedup_key(" opus  one", "2018", "OPUS")
    True
    """
    return KEY_SEPARATOR.join(
        normalize_key_part(part) for part in (name, vintage, producer)
    )
