"""
SharpLog HTTP API

Stateless JSON endpoints for the two AI steps of a logging conversation:
  POST /api/ai/log-chat    one conversational turn
  POST /api/ai/summarize   final summary draft
  GET  /health
"""

from __future__ import annotations
import logging
from typing import Any

from flask import Flask, request, jsonify, g

from sharplog.config import SharpLogConfig
from sharplog.core.errors import AIServiceError
from sharplog.core.extraction import normalize_extracted_data
from sharplog.core.llm import TextGenerator, build_llm_client
from sharplog.core.models import ExtractedData, Role, Target, Turn
from sharplog.conversation.summarize import SummarizationStage
from sharplog.conversation.turn import TurnExecutor
from sharplog.targets.validator import TargetMappingValidator
from .rate_limit import SlidingWindowRateLimiter

logger = logging.getLogger("sharplog.api")

TURN_FAILURE_MESSAGE = "I'm having trouble right now. Could you try again?"
_ROLES = {Role.USER.value, Role.ASSISTANT.value}


class BadRequest(ValueError):
    """Request body failed validation."""


# =============================================================================
# REQUEST PARSING
# =============================================================================

def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def _parse_messages(data: dict, key: str) -> list[Turn]:
    raw = data.get(key)
    if not isinstance(raw, list):
        raise BadRequest(f"'{key}' must be a list of messages")
    turns = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise BadRequest(f"{key}[{i}] must be an object")
        role, content = item.get("role"), item.get("content")
        if role not in _ROLES:
            raise BadRequest(f"{key}[{i}].role must be 'user' or 'assistant'")
        if not isinstance(content, str):
            raise BadRequest(f"{key}[{i}].content must be a string")
        turns.append(Turn(role=role, text=content))
    return turns


def _parse_industry(data: dict) -> str:
    industry = data.get("industry")
    if not isinstance(industry, str) or not industry.strip():
        raise BadRequest("'industry' is required")
    return industry.strip()


def _parse_targets(data: dict) -> list[Target]:
    raw = data.get("targets")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise BadRequest("'targets' must be a list")
    return [Target.from_context(t) for t in raw if isinstance(t, dict) and t.get("id")]


def _parse_exchange_count(data: dict) -> int:
    count = data.get("exchangeCount", 0)
    if isinstance(count, bool) or not isinstance(count, (int, float)) or count < 0:
        raise BadRequest("'exchangeCount' must be a non-negative number")
    return int(count)


def _client_key() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(
    config: SharpLogConfig | None = None,
    llm: TextGenerator | None = None,
    limiter: SlidingWindowRateLimiter | None = None,
) -> Flask:
    config = config or SharpLogConfig.from_env()
    llm = llm or build_llm_client(config.llm)

    validator = TargetMappingValidator()
    executor = TurnExecutor(llm, config.llm, config.conversation)
    summarizer = SummarizationStage(llm, config.llm, validator)
    if limiter is None and config.rate_limit.enabled:
        limiter = SlidingWindowRateLimiter(
            max_requests=config.rate_limit.max_requests,
            window_seconds=config.rate_limit.window_seconds,
        )

    app = Flask(__name__)
    app.config["SHARPLOG"] = config

    @app.before_request
    def apply_rate_limit():
        if limiter is None or not request.path.startswith("/api/"):
            return None
        decision = limiter.check(_client_key())
        g.rate_limit = decision
        if not decision.allowed:
            response = jsonify({
                "error": "Too Many Requests",
                "message": "Rate limit exceeded. Please try again later.",
            })
            response.status_code = 429
            return response
        return None

    @app.after_request
    def add_rate_limit_headers(response):
        decision = g.get("rate_limit")
        if decision is not None:
            response.headers.update(decision.headers())
        return response

    @app.errorhandler(BadRequest)
    def handle_bad_request(e: BadRequest):
        return jsonify({"error": "Bad Request", "message": str(e)}), 400

    # =========================================================================
    # ROUTES
    # =========================================================================

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/ai/log-chat", methods=["POST"])
    def log_chat():
        """One conversational turn."""
        data = _json_body()
        messages = _parse_messages(data, "messages")
        industry = _parse_industry(data)
        exchange_count = _parse_exchange_count(data)
        targets = _parse_targets(data)

        try:
            result = executor.run_turn(messages, exchange_count, industry, targets)
        except AIServiceError as e:
            logger.error(f"Log chat failed: {e}")
            return jsonify({"message": TURN_FAILURE_MESSAGE, "shouldSummarize": False}), 502

        return jsonify(result.to_dict())

    @app.route("/api/ai/summarize", methods=["POST"])
    def summarize():
        """Summary draft for a finished conversation."""
        data = _json_body()
        conversation = _parse_messages(data, "conversation")
        industry = _parse_industry(data)
        targets = _parse_targets(data)

        extracted: Any = data.get("extractedData")
        if extracted is not None and not isinstance(extracted, dict):
            raise BadRequest("'extractedData' must be an object")
        hints = normalize_extracted_data(extracted) or ExtractedData()

        employment_status = data.get("employmentStatus")
        if employment_status is not None and not isinstance(employment_status, str):
            raise BadRequest("'employmentStatus' must be a string")

        try:
            draft = summarizer.summarize(
                messages=conversation,
                extracted=hints,
                industry=industry,
                employment_status=employment_status,
                targets=targets,
            )
        except AIServiceError as e:
            logger.error(f"Summarize failed: {e}")
            return jsonify({"error": "AI Service Error", "message": "Failed to generate summary"}), 502

        return jsonify(draft.to_dict())

    return app
