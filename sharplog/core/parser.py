"""
Lenient parser for model replies that are supposed to be JSON.

Models wrap JSON in code fences, prepend chatter, or ignore the format
entirely. Each strategy below is tried in order; the first one that yields
a JSON object wins. The result is tagged so callers handle the fallback
branch explicitly instead of catching exceptions.
"""

from __future__ import annotations
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Union


FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


@dataclass(frozen=True)
class Parsed:
    """The reply contained a JSON object."""
    value: dict[str, Any]
    strategy: str


@dataclass(frozen=True)
class Fallback:
    """No strategy produced a JSON object."""
    reason: str
    raw: str


ParseResult = Union[Parsed, Fallback]


def _from_fenced_block(text: str) -> str | None:
    match = FENCED_BLOCK_RE.search(text)
    return match.group(1) if match else None


def _from_outer_braces(text: str) -> str | None:
    first_open = text.find("{")
    last_close = text.rfind("}")
    if first_open != -1 and last_close > first_open:
        return text[first_open:last_close + 1]
    return None


def _whole_text(text: str) -> str | None:
    return text.strip() or None


# Priority order matters: fences beat brace spans beat the raw reply
STRATEGIES: list[tuple[str, Callable[[str], str | None]]] = [
    ("fenced_block", _from_fenced_block),
    ("outer_braces", _from_outer_braces),
    ("whole_text", _whole_text),
]


def parse_model_json(text: str | None) -> ParseResult:
    """Run the strategies in order and return the first JSON object found."""
    if not text or not text.strip():
        return Fallback(reason="empty reply", raw=text or "")

    failures = []
    for name, locate in STRATEGIES:
        candidate = locate(text)
        if candidate is None:
            continue
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError as e:
            failures.append(f"{name}: {e.msg}")
            continue
        if isinstance(value, dict):
            return Parsed(value=value, strategy=name)
        failures.append(f"{name}: not an object")

    reason = "; ".join(failures) if failures else "no JSON found"
    return Fallback(reason=reason, raw=text)


def looks_structured(text: str) -> bool:
    """True if text opens like a JSON object or array."""
    return text.lstrip().startswith(("{", "["))
