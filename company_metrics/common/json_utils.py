"""
JSON utilities for undocumented LinkedIn payloads.

Voyager and GraphQL responses have no stable schema, so totals are found by
scanning the whole document for count-shaped keys rather than by walking a
known path. The key allowlists are explicit tables so the heuristics can be
tested and tuned in one place.
"""

import json
import math
import re
from typing import Any, FrozenSet, List, Optional, Sequence

from company_metrics.common.types import MetricKind

# Generic total-shaped keys (compared lowercase)
TOTAL_KEYS: FrozenSet[str] = frozenset({
    "total",
    "totalresults",
    "totalhits",
    "numresults",
})

EMPLOYEE_TOTAL_KEYS: FrozenSet[str] = TOTAL_KEYS | frozenset({
    "associatedmembercount",
    "totalresultcount",
    "totalcount",
})

JOB_TOTAL_KEYS: FrozenSet[str] = TOTAL_KEYS | frozenset({
    "totalresultcount",
    "jobcount",
})

METRIC_TOTAL_KEYS = {
    MetricKind.EMPLOYEE_COUNT: EMPLOYEE_TOTAL_KEYS,
    MetricKind.JOB_COUNT: JOB_TOTAL_KEYS,
}

# Organization identifier forms, in priority order
ORG_ID_PATTERNS = (
    re.compile(r"urn:li:organization:(\d+)"),
    re.compile(r"urn:li:fs_miniCompany:(\d+)"),
    re.compile(r'"entityUrn":"urn:li:organization:(\d+)"'),
)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def deep_find_totals(payload: Any, keys: FrozenSet[str] = TOTAL_KEYS) -> List[int]:
    """
    Recursively collect every numeric value stored under a total-shaped key.

    Args:
        payload: Any decoded JSON value (dict, list, scalar)
        keys: Lowercase key allowlist

    Returns:
        All matches at any depth, in document order (may be empty)

    Example:
        >>> deep_find_totals({"paging": {"Total": 12}, "data": [{"numResults": 3}]})
        [12, 3]
    """
    found: List[int] = []
    stack = [payload]
    # Explicit stack keeps deeply nested payloads off the recursion limit
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            children = []
            for key, value in node.items():
                if isinstance(key, str) and key.lower() in keys and _is_number(value):
                    found.append(int(round(value)))
                if isinstance(value, (dict, list)):
                    children.append(value)
            stack.extend(reversed(children))
        elif isinstance(node, list):
            stack.extend(reversed([v for v in node if isinstance(v, (dict, list))]))
    return found


def max_total(payload: Any, keys: FrozenSet[str] = TOTAL_KEYS, minimum: int = 1) -> Optional[int]:
    """Largest total at or above minimum, or None."""
    totals = [t for t in deep_find_totals(payload, keys) if t >= minimum]
    return max(totals) if totals else None


def find_org_id(text: Optional[str], patterns: Sequence = ORG_ID_PATTERNS) -> Optional[str]:
    """Return the first organization ID matched by the ordered patterns."""
    if not text:
        return None
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def find_org_id_in_json(payload: Any) -> Optional[str]:
    """Serialize payload and scan it for an organization identifier."""
    if payload is None:
        return None
    try:
        serialized = json.dumps(payload, separators=(",", ":"))
    except (TypeError, ValueError):
        serialized = str(payload)
    return find_org_id(serialized)


def find_key(payload: Any, name: str) -> Any:
    """First value stored under key `name` at any depth (document order), or None."""
    stack = [payload]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            if name in node and node[name] is not None:
                return node[name]
            stack.extend(reversed([v for v in node.values() if isinstance(v, (dict, list))]))
        elif isinstance(node, list):
            stack.extend(reversed([v for v in node if isinstance(v, (dict, list))]))
    return None
