"""
Target Mapping Validator.

Filters the model's proposed target links down to ones that point at a real,
active target owned by the user, with a sane contribution. Linking is
best-effort enrichment, so rejects are logged and dropped, never raised.
"""

from __future__ import annotations
import math
import logging
from dataclasses import replace

from sharplog.core.models import Target, TargetMapping

logger = logging.getLogger("sharplog.targets")


def is_valid_contribution(value) -> bool:
    """None, or a finite number strictly greater than zero."""
    if value is None:
        return True
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


class TargetMappingValidator:
    """Checks mappings against the user's live target list."""

    def __init__(self):
        self._stats = {"accepted": 0, "rejected": 0}

    @property
    def stats(self) -> dict:
        return self._stats.copy()

    def validate(
        self,
        mappings: list[TargetMapping],
        targets: list[Target],
        user_id: str | None = None,
    ) -> list[TargetMapping]:
        """Return the mappings that survive every check, in their original order."""
        by_id = {t.id: t for t in targets}
        seen: set[str] = set()
        valid = []

        for mapping in mappings:
            reason = self._rejection_reason(mapping, by_id, seen, user_id)
            if reason:
                self._stats["rejected"] += 1
                logger.warning(
                    f"Dropped target mapping: {reason} "
                    f"(targetId={mapping.target_id!r}, targetName={mapping.target_name!r}, "
                    f"contributionValue={mapping.contribution_value!r})"
                )
                continue

            target = by_id[mapping.target_id]
            seen.add(mapping.target_id)
            self._stats["accepted"] += 1
            valid.append(replace(mapping, target_name=mapping.target_name or target.name))

        return valid

    @staticmethod
    def _rejection_reason(
        mapping: TargetMapping,
        by_id: dict[str, Target],
        seen: set[str],
        user_id: str | None,
    ) -> str | None:
        target = by_id.get(mapping.target_id)
        if target is None:
            return "unknown target id"
        if user_id is not None and target.user_id != user_id:
            return "target owned by another user"
        if not target.is_active:
            return "target is not active"
        if not (target.name or "").strip():
            return "target has no name"
        if not is_valid_contribution(mapping.contribution_value):
            return "contribution must be a positive number"
        if mapping.target_id in seen:
            return "duplicate mapping for target"
        return None
