"""
Human-formatted number parsing.

LinkedIn renders counts as "754,196", "2.5K", "10M+" or inside phrases such
as "See all 1,234 employees on LinkedIn". Every strategy funnels raw text
through parse_human_number() so the heuristics live in one place.
"""

import math
import re
from typing import Any, Optional

# Whole-string numeric form after separators/whitespace/"+" are stripped
_NUMBER_WITH_SUFFIX = re.compile(r"^([0-9]+(?:\.[0-9]+)?)([km])?$", re.IGNORECASE)

# First numeric token inside free text; suffix only when not part of a word
_NUMERIC_TOKEN = re.compile(
    r"([0-9][0-9,.]*)(\s*[km](?![a-z]))?(\+)?",
    re.IGNORECASE,
)

_MULTIPLIERS = {"k": 1_000, "m": 1_000_000}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _parse_clean(cleaned: str) -> Optional[int]:
    match = _NUMBER_WITH_SUFFIX.match(cleaned)
    if not match:
        return None
    value = float(match.group(1))
    suffix = (match.group(2) or "").lower()
    scaled = value * _MULTIPLIERS.get(suffix, 1)
    if not math.isfinite(scaled):
        return None
    return _round_half_up(scaled)


def extract_first_numeric_token(text: Any) -> Optional[str]:
    """
    Return the first numeric token in text, whitespace removed.

    Example:
        >>> extract_first_numeric_token("See all 2.5 K+ employees")
        '2.5K+'
    """
    if text is None:
        return None
    match = _NUMERIC_TOKEN.search(re.sub(r"\s+", " ", str(text)))
    if not match:
        return None
    return re.sub(r"\s+", "", match.group(0))


def parse_human_number(text: Any) -> Optional[int]:
    """
    Parse human-formatted numeric text into an integer.

    Handles:
    - Thousands separators and whitespace: "1,234" -> 1234
    - Magnitude suffixes: "2.5k" -> 2500, "10M" -> 10000000
    - Floor estimates: "500+" -> 500
    - Phrases: "754,196 associated members" -> 754196

    Returns None when no numeric token can be extracted. Never raises.
    """
    if text is None or isinstance(text, bool):
        return None
    if isinstance(text, (int, float)):
        if isinstance(text, float) and not math.isfinite(text):
            return None
        return _round_half_up(text) if isinstance(text, float) else int(text)

    cleaned = re.sub(r"[,\s]", "", str(text).strip().lower()).rstrip("+")
    if not cleaned:
        return None

    parsed = _parse_clean(cleaned)
    if parsed is not None:
        return parsed

    token = extract_first_numeric_token(text)
    if not token:
        return None
    token = token.lower().replace(",", "").rstrip("+").rstrip(".")
    parsed = _parse_clean(token)
    if parsed is not None:
        return parsed

    # Dotted grouping such as "1.234.567"
    digits = re.sub(r"[^0-9]", "", token)
    if not digits or not math.isfinite(float(digits)):
        return None
    try:
        return int(digits)
    except (ValueError, OverflowError):
        return None


def format_range(start: Any, end: Any = None) -> Optional[str]:
    """Render a staff-count band: (201, 500) -> "201-500", (10001, None) -> "10001+"."""
    low = parse_human_number(start)
    high = parse_human_number(end)
    if low is None:
        return None
    if high is None or high <= low:
        return f"{low}+"
    return f"{low}-{high}"
