"""
Summarization Stage: the final model call that turns a finished logging
conversation into a reviewable work-entry draft.
"""

from __future__ import annotations
import logging
from typing import Any

from sharplog.config import LLMConfig
from sharplog.core.llm import TextGenerator
from sharplog.core.models import (
    Turn, Target, ExtractedData, SummaryDraft, TargetMapping, Role,
)
from sharplog.core.parser import parse_model_json, Parsed
from sharplog.core.extraction import normalize_extracted_data
from sharplog.core.categories import validate_category
from sharplog.core.redaction import redact_json, detect_unredacted_pii
from sharplog.targets.validator import TargetMappingValidator
from .prompts import build_summary_system_prompt, build_summary_user_message

logger = logging.getLogger("sharplog.summarize")

# Identifiers must survive the post-filter untouched
REDACTION_SKIP_KEYS = frozenset({"targetId"})


def format_user_turns(messages: list[Turn]) -> str:
    return "\n\n".join(t.text for t in messages if t.role == Role.USER.value)


class SummarizationStage:
    """Builds a SummaryDraft from the whole conversation."""

    def __init__(
        self,
        llm: TextGenerator,
        llm_config: LLMConfig | None = None,
        validator: TargetMappingValidator | None = None,
    ):
        self.llm = llm
        self.llm_config = llm_config or LLMConfig()
        self.validator = validator or TargetMappingValidator()

    def summarize(
        self,
        messages: list[Turn],
        extracted: ExtractedData,
        industry: str,
        employment_status: str | None = None,
        targets: list[Target] | None = None,
        user_id: str | None = None,
    ) -> SummaryDraft:
        """
        Ask the model for a summary and return a redacted, validated draft.

        Raises AIServiceError if the call fails. Unparseable output falls
        back to the raw text with no target links.
        """
        targets = targets or []
        system_prompt = build_summary_system_prompt(
            industry=industry or "general",
            targets=targets,
            employment_status=employment_status,
        )
        user_message = build_summary_user_message(
            format_user_turns(messages),
            extracted_hints=extracted.to_dict(),
        )
        result = self.llm.chat(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            model=self.llm_config.summary_model,
            temperature=self.llm_config.summary_temperature,
            max_tokens=self.llm_config.summary_max_tokens,
            timeout=self.llm_config.ai_timeout_seconds,
        )

        draft = self.build_draft(
            raw=result.get("content", ""),
            extracted=extracted,
            employment_status=employment_status,
            targets=targets,
            user_id=user_id,
        )
        tokens = result.get("tokens", {}).get("total", 0)
        logger.info(
            f"Summary drafted: {len(draft.skills)} skills, {len(draft.achievements)} achievements, "
            f"{len(draft.target_mappings)} target link(s), category={draft.category} ({tokens} tokens)"
        )
        return draft

    def build_draft(
        self,
        raw: str,
        extracted: ExtractedData,
        employment_status: str | None,
        targets: list[Target],
        user_id: str | None = None,
    ) -> SummaryDraft:
        """Interpret the model's reply, validate links, then apply the redaction post-filter."""
        parsed = parse_model_json(raw)
        if isinstance(parsed, Parsed):
            draft = self._draft_from_object(parsed.value, extracted, employment_status, targets, user_id)
        else:
            logger.warning(f"Summary reply not parseable ({parsed.reason}), using raw text")
            draft = SummaryDraft(
                redacted_summary=(raw or "").strip(),
                skills=list(extracted.skills),
                achievements=list(extracted.achievements),
                metrics=dict(extracted.metrics),
                category=validate_category(extracted.category, employment_status),
                target_mappings=[],
            )

        safe = SummaryDraft.from_dict(redact_json(draft.to_dict(), skip_keys=REDACTION_SKIP_KEYS))

        issues = detect_unredacted_pii(safe.redacted_summary)
        if issues:
            logger.warning(f"PII detected in summary after redaction: {issues}")
        return safe

    def _draft_from_object(
        self,
        value: dict[str, Any],
        extracted: ExtractedData,
        employment_status: str | None,
        targets: list[Target],
        user_id: str | None,
    ) -> SummaryDraft:
        summary = value.get("summary") or value.get("redactedSummary")
        if not isinstance(summary, str) or not summary.strip():
            summary = self._fallback_summary(extracted)

        facts = normalize_extracted_data(value) or ExtractedData(category="")
        category = facts.category or extracted.category

        proposed = []
        raw_mappings = value.get("targetMappings")
        if isinstance(raw_mappings, list):
            for item in raw_mappings:
                mapping = TargetMapping.from_dict(item) if isinstance(item, dict) else None
                if mapping is None:
                    logger.warning(f"Skipping malformed target mapping: {item!r}")
                    continue
                proposed.append(mapping)

        return SummaryDraft(
            redacted_summary=summary.strip(),
            skills=facts.skills or list(extracted.skills),
            achievements=facts.achievements or list(extracted.achievements),
            metrics=facts.metrics if isinstance(value.get("metrics"), dict) else dict(extracted.metrics),
            category=validate_category(category, employment_status),
            target_mappings=self.validator.validate(proposed, targets, user_id=user_id),
        )

    @staticmethod
    def _fallback_summary(extracted: ExtractedData) -> str:
        """Used when the reply parsed but carried no summary text."""
        if extracted.achievements:
            return "; ".join(extracted.achievements) + "."
        return "Work session logged."
