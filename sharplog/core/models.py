"""Core data models for the work-logging pipeline."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import uuid
import time


class ConversationStatus(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    SUMMARIZING = "summarizing"
    REVIEW = "review"
    COMPLETED = "completed"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TargetType(str, Enum):
    KPI = "kpi"
    KSB = "ksb"
    SALES_TARGET = "sales_target"
    GOAL = "goal"


DEFAULT_CATEGORY = "general"


# --- Conversation ---

@dataclass
class Turn:
    """A single message in a logging conversation."""
    role: str           # "user" or "assistant"
    text: str
    timestamp: float = field(default_factory=time.time)

    def to_api(self) -> dict:
        return {"role": self.role, "content": self.text}

    def to_dict(self) -> dict:
        return {"role": self.role, "text": self.text, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> Turn:
        return cls(
            role=data["role"],
            text=data.get("text", data.get("content", "")),
            timestamp=data.get("timestamp") or time.time(),
        )


@dataclass
class ExtractedData:
    """Facts accumulated across turns. Lists behave as insertion-ordered sets."""
    skills: list[str] = field(default_factory=list)
    achievements: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    category: str = DEFAULT_CATEGORY

    def to_dict(self) -> dict:
        return {
            "skills": list(self.skills),
            "achievements": list(self.achievements),
            "metrics": dict(self.metrics),
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> ExtractedData:
        data = data or {}
        return cls(
            skills=list(data.get("skills", [])),
            achievements=list(data.get("achievements", [])),
            metrics=dict(data.get("metrics", {})),
            category=data.get("category") or DEFAULT_CATEGORY,
        )


@dataclass
class SmartData:
    """SMART breakdown of how a piece of work moves a target."""
    specific: str | None = None
    measurable: str | None = None
    achievable: str | None = None
    relevant: str | None = None
    time_bound: str | None = None

    def to_dict(self) -> dict:
        return {
            "specific": self.specific,
            "measurable": self.measurable,
            "achievable": self.achievable,
            "relevant": self.relevant,
            "timeBound": self.time_bound,
        }

    @classmethod
    def from_dict(cls, data: dict) -> SmartData:
        def _str(key: str) -> str | None:
            value = data.get(key)
            return value if isinstance(value, str) else None

        return cls(
            specific=_str("specific"),
            measurable=_str("measurable"),
            achievable=_str("achievable"),
            relevant=_str("relevant"),
            time_bound=_str("timeBound") or _str("time_bound"),
        )


@dataclass
class TargetMapping:
    """A proposed link between a work entry and one of the user's targets."""
    target_id: str
    target_name: str | None = None
    contribution_value: Any = None      # validated to a positive number downstream
    contribution_note: str | None = None
    smart: SmartData | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"targetId": self.target_id}
        if self.target_name is not None:
            data["targetName"] = self.target_name
        if self.contribution_value is not None:
            data["contributionValue"] = self.contribution_value
        if self.contribution_note is not None:
            data["contributionNote"] = self.contribution_note
        if self.smart is not None:
            data["smart"] = self.smart.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> TargetMapping | None:
        """Build from model or wire output. Returns None when there is no usable id."""
        target_id = data.get("targetId", data.get("target_id"))
        if target_id is None or (isinstance(target_id, str) and not target_id.strip()):
            return None

        smart_raw = data.get("smart") or data.get("smartData")
        note = data.get("contributionNote")
        name = data.get("targetName")
        return cls(
            target_id=str(target_id).strip(),
            target_name=name if isinstance(name, str) else None,
            contribution_value=data.get("contributionValue"),
            contribution_note=note if isinstance(note, str) else None,
            smart=SmartData.from_dict(smart_raw) if isinstance(smart_raw, dict) else None,
        )


@dataclass
class SummaryDraft:
    """Candidate work entry awaiting the user's review."""
    redacted_summary: str
    skills: list[str] = field(default_factory=list)
    achievements: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    category: str = DEFAULT_CATEGORY
    target_mappings: list[TargetMapping] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "redactedSummary": self.redacted_summary,
            "skills": list(self.skills),
            "achievements": list(self.achievements),
            "metrics": dict(self.metrics),
            "category": self.category,
            "targetMappings": [m.to_dict() for m in self.target_mappings],
        }

    @classmethod
    def from_dict(cls, data: dict) -> SummaryDraft:
        mappings = []
        for raw in data.get("targetMappings", []) or []:
            if isinstance(raw, dict):
                mapping = TargetMapping.from_dict(raw)
                if mapping:
                    mappings.append(mapping)
        return cls(
            redacted_summary=data.get("redactedSummary") or "",
            skills=list(data.get("skills") or []),
            achievements=list(data.get("achievements") or []),
            metrics=dict(data.get("metrics") or {}),
            category=data.get("category") or DEFAULT_CATEGORY,
            target_mappings=mappings,
        )


@dataclass
class ConversationState:
    """Everything a logging session needs to resume after a reload."""
    status: ConversationStatus = ConversationStatus.IDLE
    messages: list[Turn] = field(default_factory=list)
    exchange_count: int = 0
    extracted_data: ExtractedData = field(default_factory=ExtractedData)
    summary_draft: SummaryDraft | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "messages": [t.to_dict() for t in self.messages],
            "exchange_count": self.exchange_count,
            "extracted_data": self.extracted_data.to_dict(),
            "summary_draft": self.summary_draft.to_dict() if self.summary_draft else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ConversationState:
        draft = data.get("summary_draft")
        return cls(
            status=ConversationStatus(data.get("status", "idle")),
            messages=[Turn.from_dict(t) for t in data.get("messages", [])],
            exchange_count=max(0, int(data.get("exchange_count", 0))),
            extracted_data=ExtractedData.from_dict(data.get("extracted_data")),
            summary_draft=SummaryDraft.from_dict(draft) if draft else None,
        )


@dataclass
class TurnResult:
    """What the turn executor hands back for one exchange."""
    message: str
    extracted_data: ExtractedData | None = None
    should_summarize: bool = False

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "message": self.message,
            "shouldSummarize": self.should_summarize,
        }
        if self.extracted_data is not None:
            data["extractedData"] = self.extracted_data.to_dict()
        return data


# --- Profile & Targets ---

def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class UserProfile:
    """The slice of the user's profile the pipeline reads."""
    user_id: str
    industry: str = "general"
    employment_status: str | None = None


@dataclass
class Target:
    """A user-owned goal that work entries can contribute to."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = ""
    name: str = ""
    description: str | None = None
    type: str = TargetType.GOAL.value
    target_value: float | None = None
    current_value: float = 0.0
    unit: str | None = None
    deadline: str | None = None
    is_active: bool = True

    def to_context(self) -> dict:
        """Shape sent to the AI endpoints."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "target_value": self.target_value,
            "current_value": self.current_value,
            "unit": self.unit,
            "deadline": self.deadline,
        }

    @classmethod
    def from_context(cls, data: dict, user_id: str = "") -> Target:
        return cls(
            id=str(data.get("id", "")),
            user_id=user_id,
            name=str(data.get("name") or ""),
            description=data.get("description"),
            type=data.get("type") or TargetType.GOAL.value,
            target_value=_as_float(data.get("target_value")),
            current_value=_as_float(data.get("current_value")) or 0.0,
            unit=data.get("unit"),
            deadline=data.get("deadline"),
            is_active=data.get("is_active", True),
        )


# --- Persisted rows ---

@dataclass
class WorkEntryRecord:
    """One accepted, summarized logging session."""
    user_id: str
    redacted_summary: str
    encrypted_original: str
    skills: list[str] = field(default_factory=list)
    achievements: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    category: str = DEFAULT_CATEGORY
    target_ids: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)


@dataclass
class WorkEntryTargetRow:
    """Link row between a work entry and a target."""
    work_entry_id: str
    target_id: str
    contribution_value: float | None = None
    contribution_note: str | None = None
    smart_data: dict | None = None


@dataclass
class AcceptResult:
    """Outcome of the persistence transaction."""
    work_entry: WorkEntryRecord
    mappings_saved: bool = True
    failed_progress_targets: list[str] = field(default_factory=list)

    @property
    def fully_saved(self) -> bool:
        return self.mappings_saved and not self.failed_progress_targets
