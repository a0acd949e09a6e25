"""
Confidence-Based Field Merge
============================

Merges a new extraction into a stored record field by field:

1. A field missing from the stored record is always added.
2. A stored field is replaced only when the new value's confidence is
   at least as high as the stored one.
3. Blank values never overwrite anything (extractors drop them before
   they reach this point).

Merging is independent of arrival order for fields of different
confidence: a low-confidence re-ingestion never clobbers a value from a
better extraction.
"""

from __future__ import annotations

import logging

from wine_catalog.core.schema import FieldValue

logger = logging.getLogger(__name__)


class ConfidenceMerger:
    """Field-level merge of extracted attributes by confidence."""

    def merge(
        self,
        existing: dict[str, FieldValue],
        incoming: dict[str, FieldValue],
    ) -> tuple[dict[str, FieldValue], list[str]]:
        """
        Merge ``incoming`` into ``existing``.

        Args:
            existing: Stored attributes keyed by field name.
            incoming: Newly extracted attributes keyed by field name.

        Returns:
            (merged attributes, names of fields that were added or replaced)
        """
        merged = dict(existing)
        changed: list[str] = []

        for field, new_value in incoming.items():
            if not new_value.value.strip():
                continue

            current = merged.get(field)
            if current is None or not current.value.strip():
                merged[field] = new_value
                changed.append(field)
            elif new_value.confidence >= current.confidence:
                if new_value != current:
                    merged[field] = new_value
                    changed.append(field)
            else:
                logger.debug(
                    "Kept %s=%r (%.2f) over %r (%.2f)",
                    field,
                    current.value,
                    current.confidence,
                    new_value.value,
                    new_value.confidence,
                )

        return merged, changed


_default_merger = ConfidenceMerger()


def merge_attributes(
    existing: dict[str, FieldValue],
    incoming: dict[str, FieldValue],
) -> tuple[dict[str, FieldValue], list[str]]:
    """Merge with the module-level merger."""
    return _default_merger.merge(existing, incoming)
