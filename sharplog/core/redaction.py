"""
Post-processing redaction.

Regex-based scrubbing applied to every piece of model output before it is
shown or stored. This runs regardless of whether the model followed the
redaction rules in its prompt. Placeholders contain no digits, '@' or '$',
so running the filter twice gives the same text.
"""

from __future__ import annotations
import re
import logging
from typing import Any

logger = logging.getLogger("sharplog.redaction")


_MONEY = r"\$\d[\d,]*(?:\.\d{1,2})?(?:\s*[kKmM]\b)?"
_SALARY_WORDS = r"(?:salary|salaries|compensation|pay|income|bonus)"
_DEAL_WORDS = r"(?:deal|contract|agreement|sale)"

PII_PATTERNS: dict[str, re.Pattern] = {
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "credit_card": re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
    "ssn": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    "phone": re.compile(r"(?<![\w+])(?:\+\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
    "ipv4": re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"),
    "salary_amount": re.compile(_MONEY + r"\s*" + _SALARY_WORDS + r"\b", re.IGNORECASE),
    "salary_amount_after": re.compile(
        r"\b(" + _SALARY_WORDS + r")(\s*:\s*|\s+(?:(?:of|is|was|at)\s+)?)" + _MONEY, re.IGNORECASE
    ),
    "deal_amount": re.compile(_MONEY + r"\s*" + _DEAL_WORDS + r"\b", re.IGNORECASE),
    "deal_amount_after": re.compile(
        r"\b(" + _DEAL_WORDS + r")(\s*:\s*|\s+(?:(?:of|worth|for|at)\s+)?)" + _MONEY, re.IGNORECASE
    ),
    "url": re.compile(r"https?://[^\s]+"),
}

PLACEHOLDERS = {
    "email": "[EMAIL]",
    "credit_card": "[ACCOUNT]",
    "ssn": "[SSN]",
    "phone": "[PHONE]",
    "ipv4": "[IP]",
    "salary_amount": "[SALARY]",
    "deal_amount": "[AMOUNT] deal",
    "url": "[URL]",
}

# Public placeholder domains that are safe to show
SAFE_URL_MARKERS = ("example.com", "localhost")

# Checked again after redaction; anything found here is logged for audit
DETECTION_LABELS = {
    "email": "Email address detected",
    "phone": "Phone number detected",
    "ssn": "SSN detected",
    "ipv4": "IP address detected",
    "credit_card": "Card number detected",
}


def _redact_url(match: re.Match) -> str:
    url = match.group(0)
    if any(marker in url for marker in SAFE_URL_MARKERS):
        return url
    return PLACEHOLDERS["url"]


def redact_pii(text: str) -> str:
    """Replace sensitive substrings in text with fixed placeholders."""
    if not text:
        return text

    redacted = text
    # Emails first so a URL containing one still loses the address
    redacted = PII_PATTERNS["email"].sub(PLACEHOLDERS["email"], redacted)
    # URLs next: a replaced URL opens a word boundary the patterns below rely on
    redacted = PII_PATTERNS["url"].sub(_redact_url, redacted)
    # Cards before phones, otherwise a 4-4-4-4 group can be half-eaten
    redacted = PII_PATTERNS["credit_card"].sub(PLACEHOLDERS["credit_card"], redacted)
    redacted = PII_PATTERNS["ssn"].sub(PLACEHOLDERS["ssn"], redacted)
    redacted = PII_PATTERNS["phone"].sub(PLACEHOLDERS["phone"], redacted)
    redacted = PII_PATTERNS["ipv4"].sub(PLACEHOLDERS["ipv4"], redacted)

    redacted = PII_PATTERNS["salary_amount"].sub(PLACEHOLDERS["salary_amount"], redacted)
    redacted = PII_PATTERNS["salary_amount_after"].sub(r"\1\2[SALARY]", redacted)
    redacted = PII_PATTERNS["deal_amount"].sub(PLACEHOLDERS["deal_amount"], redacted)
    redacted = PII_PATTERNS["deal_amount_after"].sub(r"\1\2[AMOUNT]", redacted)
    return redacted


def redact_json(obj: Any, skip_keys: frozenset[str] = frozenset()) -> Any:
    """
    Recursively redact every string inside a JSON-like structure.

    Values under keys in skip_keys (identifiers, mostly) are left alone.
    Numbers, booleans and None pass through unchanged.
    """
    if isinstance(obj, str):
        return redact_pii(obj)
    if isinstance(obj, list):
        return [redact_json(item, skip_keys) for item in obj]
    if isinstance(obj, dict):
        return {
            key: value if key in skip_keys else redact_json(value, skip_keys)
            for key, value in obj.items()
        }
    return obj


def detect_unredacted_pii(text: str) -> list[str]:
    """Return a label for each kind of PII still present in text."""
    if not text:
        return []
    return [
        label for name, label in DETECTION_LABELS.items()
        if PII_PATTERNS[name].search(text)
    ]
