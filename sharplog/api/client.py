"""
Remote client for the SharpLog HTTP API.

Exposes run_turn / summarize with the same shape as the local TurnExecutor
and SummarizationStage, so a ConversationSession can run against a server.
"""

from __future__ import annotations
import logging

import requests

from sharplog.config import LLMConfig
from sharplog.core.errors import AIServiceError
from sharplog.core.extraction import normalize_extracted_data
from sharplog.core.models import ExtractedData, SummaryDraft, Target, Turn, TurnResult

logger = logging.getLogger("sharplog.client")


class APIClient:
    """JSON over HTTP with a longer timeout for AI endpoints."""

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        config: LLMConfig | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        config = config or LLMConfig()
        self.ai_timeout = config.ai_timeout_seconds
        self.default_timeout = config.default_timeout_seconds
        self.session = session or requests.Session()

    def timeout_for(self, endpoint: str) -> float:
        return self.ai_timeout if endpoint.startswith("/api/ai/") else self.default_timeout

    def _request(self, method: str, endpoint: str, payload: dict | None = None) -> dict:
        timeout = self.timeout_for(endpoint)
        try:
            resp = self.session.request(
                method, f"{self.base_url}{endpoint}", json=payload, timeout=timeout,
            )
        except requests.Timeout as e:
            raise AIServiceError(f"Request timed out after {timeout:.0f}s. Please try again.") from e
        except requests.RequestException as e:
            raise AIServiceError(f"Could not reach {self.base_url}: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.status_code >= 400:
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(f"{method} {endpoint} -> {resp.status_code}: {message}")
            raise AIServiceError(
                message or f"Request failed with status {resp.status_code}",
                retryable=resp.status_code == 429 or resp.status_code >= 500,
            )
        if not isinstance(data, dict):
            raise AIServiceError(f"Unexpected response from {endpoint}")
        return data

    def health(self) -> bool:
        try:
            return self._request("GET", "/health").get("status") == "ok"
        except AIServiceError:
            return False

    def run_turn(
        self,
        messages: list[Turn],
        exchange_count: int,
        industry: str,
        targets: list[Target] | None = None,
    ) -> TurnResult:
        data = self._request("POST", "/api/ai/log-chat", {
            "messages": [m.to_api() for m in messages],
            "exchangeCount": exchange_count,
            "industry": industry,
            "targets": [t.to_context() for t in targets or []],
        })
        try:
            return TurnResult(
                message=str(data.get("message", "")),
                extracted_data=normalize_extracted_data(data.get("extractedData")),
                should_summarize=bool(data.get("shouldSummarize", False)),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise AIServiceError(f"Malformed turn response: {e}") from e

    def summarize(
        self,
        messages: list[Turn],
        extracted: ExtractedData,
        industry: str,
        employment_status: str | None = None,
        targets: list[Target] | None = None,
        user_id: str | None = None,
    ) -> SummaryDraft:
        # user_id is not sent; the server only sees what the client holds
        payload = {
            "conversation": [m.to_api() for m in messages],
            "extractedData": extracted.to_dict(),
            "industry": industry,
            "targets": [t.to_context() for t in targets or []],
        }
        if employment_status:
            payload["employmentStatus"] = employment_status
        data = self._request("POST", "/api/ai/summarize", payload)
        try:
            return SummaryDraft.from_dict(data)
        except (TypeError, ValueError, AttributeError) as e:
            raise AIServiceError(f"Malformed summary response: {e}") from e
