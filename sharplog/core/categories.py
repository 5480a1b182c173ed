"""Work-entry categories and the validator that snaps model output onto them."""

from __future__ import annotations
import logging

logger = logging.getLogger("sharplog.categories")

GENERAL = "General"

CATEGORY_BY_EMPLOYMENT: dict[str, list[str]] = {
    "student": [
        "Coursework",
        "Projects",
        "Part-time Work",
        "Extracurricular",
        "Learning",
        GENERAL,
    ],
    "apprentice": [
        "On-the-job Training",
        "Classroom Training",
        "Projects",
        "Assessment",
        "Learning",
        GENERAL,
    ],
    "professional": [
        "Development",
        "Design",
        "Meetings",
        "Learning",
        "Sales",
        "Marketing",
        "Operations",
        "Support",
        "Research",
        GENERAL,
    ],
}


def get_categories_for_user(employment_status: str | None = None) -> list[str]:
    """Category list for an employment status. Employed and job-seeking users are professionals."""
    if employment_status in ("student", "apprentice"):
        return CATEGORY_BY_EMPLOYMENT[employment_status]
    return CATEGORY_BY_EMPLOYMENT["professional"]


def validate_category(category: str | None, employment_status: str | None = None) -> str:
    """
    Normalize a category against the allowed list.

    Exact match, then case-insensitive, then containment either way.
    Anything else becomes "General".
    """
    valid = get_categories_for_user(employment_status)
    if not category or not category.strip():
        return GENERAL

    if category in valid:
        return category

    normalized = category.strip().lower()
    for c in valid:
        if c.lower() == normalized:
            return c

    for c in valid:
        if normalized in c.lower() or c.lower() in normalized:
            return c

    logger.warning(f"Invalid category {category!r} normalized to {GENERAL!r}")
    return GENERAL
