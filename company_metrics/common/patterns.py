"""
Ordered extraction rule tables.

Each scraping cascade is expressed as data: a tuple of PatternRule entries
evaluated in order by first_match(). The first rule whose pattern matches
and whose normalizer yields a usable number wins.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Pattern, Sequence, Union

from bs4 import BeautifulSoup

from company_metrics.common.number_parser import parse_human_number
from company_metrics.common.types import Confidence

# Count token as it appears on LinkedIn pages: 1,234 / 2.5K / 10K+
COUNT = r"(\d[\d,.]*\s?[km]?\+?)"


@dataclass(frozen=True)
class PatternRule:
    """One (pattern, normalizer) pair; group 1 holds the raw count."""
    label: str
    pattern: Pattern
    confidence: Confidence = Confidence.SEARCH_TOTAL
    normalizer: Callable[[str], Optional[int]] = parse_human_number


@dataclass(frozen=True)
class PatternHit:
    """A successful rule evaluation."""
    rule: PatternRule
    raw: str
    value: int


def rule(
    label: str,
    pattern: Union[str, Pattern],
    confidence: Confidence = Confidence.SEARCH_TOTAL,
    normalizer: Callable[[str], Optional[int]] = parse_human_number,
) -> PatternRule:
    """Build a case-insensitive PatternRule."""
    compiled = re.compile(pattern, re.IGNORECASE) if isinstance(pattern, str) else pattern
    return PatternRule(label=label, pattern=compiled, confidence=confidence, normalizer=normalizer)


def first_match(
    text: Optional[str],
    rules: Sequence[PatternRule],
    minimum: int = 1,
) -> Optional[PatternHit]:
    """
    Evaluate rules in order against text; first usable number wins.

    A match whose normalized value is None or below minimum is skipped and
    the next rule is tried.
    """
    if not text:
        return None
    collapsed = re.sub(r"\s+", " ", text)
    for candidate_rule in rules:
        for match in candidate_rule.pattern.finditer(collapsed):
            raw = next((g for g in match.groups() if g), None)
            if raw is None:
                continue
            value = candidate_rule.normalizer(raw)
            if value is not None and value >= minimum:
                return PatternHit(rule=candidate_rule, raw=raw.strip(), value=value)
    return None


def first_match_in(
    texts: Iterable[str],
    rules: Sequence[PatternRule],
    minimum: int = 1,
) -> Optional[PatternHit]:
    """first_match() over several text fragments, rules outermost."""
    fragments = [t for t in texts if t]
    for candidate_rule in rules:
        for fragment in fragments:
            hit = first_match(fragment, (candidate_rule,), minimum=minimum)
            if hit:
                return hit
    return None


# ===== Employee count =====

EMPLOYEE_TEXT_RULES = (
    rule("associated-members", COUNT + r"\s+associated\s+members\b", Confidence.EXACT),
    rule("see-all-employees-on-linkedin", r"see\s+all\s+" + COUNT + r"\s+employees\s+on\s+linkedin", Confidence.EXACT),
    rule("employees-on-linkedin", COUNT + r"\s+employees?\s+on\s+linkedin", Confidence.EXACT),
    rule("see-all-employees", r"(?:see|view)\s+all\s+" + COUNT + r"\s+employees", Confidence.SEARCH_TOTAL),
    rule("people-work-here", COUNT + r"\s+people\s+work\s+here", Confidence.SEARCH_TOTAL),
    rule("members-on-linkedin", COUNT + r"\s+members?\s+on\s+linkedin", Confidence.SEARCH_TOTAL),
    rule("employees", COUNT + r"\s+employees\b", Confidence.SEARCH_TOTAL),
)

# Raw markup (not rendered text): embedded JSON counters
EMPLOYEE_MARKUP_RULES = EMPLOYEE_TEXT_RULES[:3] + (
    rule("embedded-associated-member-count", r'"associatedMemberCount"\s*:\s*(\d+)', Confidence.EXACT),
)

# ===== Job count =====

JOB_TEXT_RULES = (
    rule("has-job-openings", r"has\s+" + COUNT + r"\s+(?:job\s+openings?|posted\s+jobs?)"),
    rule("job-openings", COUNT + r"\s+(?:job\s+openings?|posted\s+jobs?)"),
    rule("results", COUNT + r"\s+results\b"),
)

# Fetched (unrendered) jobs page markup
JOB_MARKUP_RULES = (
    rule("results", COUNT + r"\s+results\b"),
    rule("has-job-openings", r"has\s+" + COUNT + r"\s+(?:job\s+openings?|posted\s+jobs?)"),
)

# Prominent headings on jobs pages: "25 jobs", "Jobs (25)"
JOB_HEADING_RULES = (
    rule("count-jobs", r"^" + COUNT + r"\s+(?:jobs?|job\s+openings|results?)\b"),
    rule("jobs-count", r"\b(?:jobs|job\s+openings|results?)\b\s*[()\-:]?\s*" + COUNT),
)

# Company navigation link "Jobs (12)" / "Jobs 12"
JOB_NAV_RULES = (
    rule("nav-jobs", r"\bjobs\b\s*[()\-:]?\s*" + COUNT),
)

# Search result headers: "About 1,200 results"
SEARCH_RESULT_RULES = (
    rule("about-results", r"about\s+" + COUNT + r"\s+results\b"),
    rule("results", COUNT + r"\s+results\b"),
)

# ===== Company size band (about page) =====

SIZE_BAND_PATTERNS = (
    re.compile(r"company\s+size\s*([\d,]+)\s*[–\-]\s*([\d,]+)", re.IGNORECASE),
    re.compile(r"([\d,]+)\s*[–\-]\s*([\d,]+)\s+employees", re.IGNORECASE),
    re.compile(r"company\s+size[^\n]*?([\d,]+\+)\s+employees", re.IGNORECASE),
    re.compile(r"([\d,]+\+)\s+employees", re.IGNORECASE),
)


def find_size_band(text: Optional[str]) -> Optional[str]:
    """
    Extract a company-size band such as "1,001-5,000" or "10,001+".

    Returns the band as written on the page (separators kept) or None.
    """
    if not text:
        return None
    for pattern in SIZE_BAND_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        groups = [g for g in match.groups() if g]
        if len(groups) == 2:
            return f"{groups[0]}-{groups[1]}"
        return groups[0]
    return None


def visible_text(markup: Optional[str]) -> str:
    """Text content of an HTML document with scripts and styles removed."""
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup.get_text(" ", strip=True)
