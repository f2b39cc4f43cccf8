"""
Query router: decides whether a recall is answered by the structured index or by
semantic similarity.

This is a fixed pattern heuristic, not a classifier. Temporal patterns are checked
before exact-lookup patterns, the first match wins, and no match means semantic.
"""

import re
from typing import Optional, Tuple

from .errors import ValidationError

MODE_AUTO = "auto"
MODE_STRUCTURED = "structured"
MODE_SEMANTIC = "semantic"

RECALL_MODES = (MODE_AUTO, MODE_STRUCTURED, MODE_SEMANTIC)

_WEEKDAYS = r"monday|tuesday|wednesday|thursday|friday|saturday|sunday"
_MONTHS = r"january|february|march|april|may|june|july|august|september|october|november|december"

TEMPORAL_PATTERNS = [
    ("weekday", re.compile(rf"\b({_WEEKDAYS})s?\b", re.IGNORECASE)),
    ("month", re.compile(rf"\b({_MONTHS})\b", re.IGNORECASE)),
    ("relative_day", re.compile(r"\b(yesterday|today)\b", re.IGNORECASE)),
    ("relative_period", re.compile(r"\b(last|this)\s+(week|month|year)\b", re.IGNORECASE)),
    ("clock_time", re.compile(r"\b\d{1,2}:\d{2}\b")),
    ("iso_date", re.compile(r"\b\d{4}-\d{2}-\d{2}\b")),
    ("when_did", re.compile(r"\bwhen\s+did\b", re.IGNORECASE)),
    ("preposition_number", re.compile(r"\b(at|on|during|before|after)\s+\d", re.IGNORECASE)),
]

EXACT_PATTERNS = [
    ("what_is_my", re.compile(r"\bwhat\s+(is|are|was|were)\s+(my|the)\b", re.IGNORECASE)),
    ("exact", re.compile(r"\bexact(ly)?\b", re.IGNORECASE)),
    ("id_lookup", re.compile(r"\bid\s*[:=]", re.IGNORECASE)),
]


def match_pattern(query: str) -> Optional[Tuple[str, str]]:
    """Return (family, pattern name) of the first matching pattern, or None."""
    if not query:
        return None
    for name, pattern in TEMPORAL_PATTERNS:
        if pattern.search(query):
            return ("temporal", name)
    for name, pattern in EXACT_PATTERNS:
        if pattern.search(query):
            return ("exact", name)
    return None


def classify_query(query: str) -> str:
    """Classify a query string as 'structured' or 'semantic'."""
    return MODE_STRUCTURED if match_pattern(query) else MODE_SEMANTIC


def resolve_mode(query: str, mode: Optional[str] = None) -> str:
    """An explicit structured/semantic mode bypasses classification entirely."""
    if mode is None or mode == MODE_AUTO:
        return classify_query(query)
    if mode in (MODE_STRUCTURED, MODE_SEMANTIC):
        return mode
    raise ValidationError(f"mode must be one of: {list(RECALL_MODES)}")
