"""Accumulation of extracted facts across conversation turns."""

from __future__ import annotations
from typing import Any

from .models import ExtractedData, DEFAULT_CATEGORY


def _clean_strings(values: Any) -> list[str]:
    """Keep non-empty strings from a list-like model field, stripped."""
    if not isinstance(values, (list, tuple)):
        return []
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]


def _union(existing: list[str], new: list[str]) -> list[str]:
    """Ordered set union: first occurrence wins."""
    return list(dict.fromkeys([*existing, *new]))


def normalize_extracted_data(raw: Any) -> ExtractedData | None:
    """
    Coerce the loosely typed extractedData object from a model reply.

    Returns None if raw is not an object at all. Category is left empty
    when the model did not supply one, so merging keeps the previous value.
    """
    if not isinstance(raw, dict):
        return None

    metrics = raw.get("metrics")
    category = raw.get("category")
    return ExtractedData(
        skills=_union([], _clean_strings(raw.get("skills"))),
        achievements=_union([], _clean_strings(raw.get("achievements"))),
        metrics={str(k): v for k, v in metrics.items()} if isinstance(metrics, dict) else {},
        category=category.strip() if isinstance(category, str) else "",
    )


def merge_extracted_data(existing: ExtractedData, new: ExtractedData | None) -> ExtractedData:
    """
    Merge one turn's extraction into the running total.

    Skills and achievements are unioned, metrics are shallow-merged with
    later values winning, and category only changes when the new turn
    names one. Nothing already captured is ever dropped.
    """
    if new is None:
        return ExtractedData(
            skills=list(existing.skills),
            achievements=list(existing.achievements),
            metrics=dict(existing.metrics),
            category=existing.category,
        )

    return ExtractedData(
        skills=_union(existing.skills, new.skills),
        achievements=_union(existing.achievements, new.achievements),
        metrics={**existing.metrics, **new.metrics},
        category=new.category if new.category else (existing.category or DEFAULT_CATEGORY),
    )
