"""
Turn Executor: one conversational exchange with the text-generation service.

The model is asked for JSON but is not trusted to produce it. Whatever comes
back is reduced to a plain assistant message that never contains raw
structure, plus whatever extraction could be salvaged.
"""

from __future__ import annotations
import logging

from sharplog.config import LLMConfig, ConversationConfig
from sharplog.core.llm import TextGenerator
from sharplog.core.models import Turn, Target, TurnResult
from sharplog.core.parser import parse_model_json, Parsed, looks_structured
from sharplog.core.extraction import normalize_extracted_data
from sharplog.core.redaction import redact_pii
from .prompts import build_turn_system_prompt

logger = logging.getLogger("sharplog.turn")


class TurnExecutor:
    """Sends the running history to the model and interprets its reply."""

    def __init__(
        self,
        llm: TextGenerator,
        llm_config: LLMConfig | None = None,
        conversation_config: ConversationConfig | None = None,
    ):
        self.llm = llm
        self.llm_config = llm_config or LLMConfig()
        self.config = conversation_config or ConversationConfig()

    @property
    def max_exchanges(self) -> int:
        return self.config.max_exchanges

    def run_turn(
        self,
        messages: list[Turn],
        exchange_count: int,
        industry: str,
        targets: list[Target] | None = None,
    ) -> TurnResult:
        """
        Produce the assistant's reply for the latest user message.

        Raises AIServiceError if the service call fails; malformed output
        never raises.
        """
        system_prompt = build_turn_system_prompt(
            industry=industry or "general",
            exchange_count=exchange_count,
            max_exchanges=self.max_exchanges,
            targets=targets,
        )
        result = self.llm.chat(
            messages=[{"role": "system", "content": system_prompt}]
            + [t.to_api() for t in messages],
            model=self.llm_config.turn_model,
            temperature=self.llm_config.turn_temperature,
            max_tokens=self.llm_config.turn_max_tokens,
            timeout=self.llm_config.ai_timeout_seconds,
        )

        turn = self.interpret_reply(result.get("content", ""), exchange_count)
        logger.info(
            f"Turn {exchange_count + 1}/{self.max_exchanges}: "
            f"{len(turn.message)} chars, shouldSummarize={turn.should_summarize}"
        )
        return turn

    def interpret_reply(self, raw: str, exchange_count: int) -> TurnResult:
        """Turn a raw model reply into a TurnResult."""
        fallback = self.config.fallback_question
        budget_spent = exchange_count + 1 >= self.max_exchanges

        parsed = parse_model_json(raw)
        if isinstance(parsed, Parsed):
            value = parsed.value
            message = value.get("message")
            if not isinstance(message, str) or not message.strip():
                logger.warning(f"Model reply had no usable message (via {parsed.strategy}), using fallback question")
                message = fallback
            extracted = normalize_extracted_data(value.get("extractedData"))
            model_says_done = value.get("shouldSummarize") is True
        else:
            logger.info(f"Model reply not parseable as JSON ({parsed.reason}), treating as plain text")
            text = (raw or "").strip()
            message = text if text and not looks_structured(text) else fallback
            extracted = None
            model_says_done = False

        if looks_structured(message):
            logger.warning("Outgoing message still looked like JSON, replaced with fallback question")
            message = fallback

        return TurnResult(
            message=redact_pii(message.strip()),
            extracted_data=extracted,
            should_summarize=model_says_done or budget_spent,
        )
