"""
Canonical Types for the Company Metrics Resolver

This module defines the data structures shared by the identity resolver,
the three acquisition strategies, the merge policy and the orchestrator.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional


class MetricKind(str, Enum):
    """The two metrics resolved for an organization."""
    EMPLOYEE_COUNT = "employee_count"
    JOB_COUNT = "job_count"


class StrategyName(str, Enum):
    """Acquisition channels, in priority order."""
    STRUCTURED = "structured"
    SEMI_STRUCTURED = "semi_structured"
    RENDERED = "rendered"


# Lower index = tried first, preferred on confidence ties
STRATEGY_PRIORITY = (
    StrategyName.STRUCTURED,
    StrategyName.SEMI_STRUCTURED,
    StrategyName.RENDERED,
)


class StrategyMode(str, Enum):
    """Caller preference forcing or skipping strategy tiers."""
    AUTO = "auto"
    STRUCTURED_ONLY = "structured-only"
    SEMI_STRUCTURED_ONLY = "semi-structured-only"
    RENDERED_ONLY = "rendered-only"

    @classmethod
    def parse(cls, value: Optional[str]) -> "StrategyMode":
        """Parse a mode string ("Rendered_Only", "auto", None -> AUTO)."""
        if value is None or isinstance(value, cls):
            return value or cls.AUTO
        normalized = str(value).strip().lower().replace("_", "-")
        if not normalized:
            return cls.AUTO
        for mode in cls:
            if mode.value == normalized:
                return mode
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown strategy mode '{value}'. Expected one of: {valid}")


class ResolutionMethod(str, Enum):
    """How the organization ID was obtained."""
    STRUCTURED_LOOKUP = "structured-lookup"
    PAGE_SCAN = "page-scan"
    ABOUT_PAGE_SCAN = "about-page-scan"


class Confidence(IntEnum):
    """Ordinal trust in a candidate; higher wins the merge."""
    APPROXIMATE = 1   # rendered result-node count
    RANGE_ONLY = 2    # size-band estimate ("201-500")
    SEARCH_TOTAL = 3  # broad search-derived total
    EXACT = 4         # "associated members" / org-scoped people total


class ResolutionState(str, Enum):
    """Orchestrator state machine."""
    IDLE = "idle"
    RESOLVING_IDENTITY = "resolving_identity"
    RUNNING_STRATEGIES = "running_strategies"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


# Provenance tags that are not strategy names
SOURCE_RATE_LIMITED = "rate_limited"
SOURCE_BLOCKED = "blocked"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class CompanyReference:
    """A caller reference after normalization."""
    raw: str
    url: str
    slug: str

    @property
    def about_url(self) -> str:
        return f"{self.url}about/"

    def sub_page(self, name: str) -> str:
        """Canonical sub-page URL, e.g. sub_page("people")."""
        return f"{self.url}{name.strip('/')}/"


@dataclass(frozen=True)
class OrganizationIdentity:
    """Resolved internal organization ID plus the step that produced it."""
    organization_id: str
    method: ResolutionMethod

    @property
    def urn(self) -> str:
        return f"urn:li:organization:{self.organization_id}"


@dataclass
class MetricCandidate:
    """A single strategy's proposed value for a metric."""
    kind: MetricKind
    source: StrategyName
    confidence: Confidence
    value: Optional[int] = None
    range: Optional[str] = None
    detail: Optional[str] = None  # endpoint / pattern label

    def __post_init__(self):
        if self.value is None and not self.range:
            raise ValueError("MetricCandidate needs a value or a range")

    @property
    def is_exact_value(self) -> bool:
        return self.value is not None


@dataclass
class ResolutionAttempt:
    """One entry of the append-only attempt log."""
    strategy: str
    succeeded: bool
    error_message: Optional[str] = None
    latency_ms: int = 0
    metric: Optional[str] = None
    operation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "succeeded": self.succeeded,
            "errorMessage": self.error_message,
            "latencyMs": self.latency_ms,
            "metric": self.metric,
            "operation": self.operation,
        }


@dataclass
class OrganizationProfile:
    """Descriptive facts returned by the structured basic-facts query."""
    name: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    founded_year: Optional[int] = None
    headquarters: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "industry": self.industry,
            "website": self.website,
            "foundedYear": self.founded_year,
            "headquarters": self.headquarters,
        }


@dataclass
class ResolutionResult:
    """Terminal artifact of one resolution call."""
    organization_id: str
    company_url: str
    slug: str
    employee_count: Optional[int] = None
    employee_count_range: Optional[str] = None
    jobs_posted_count: Optional[int] = None
    data_source: str = SOURCE_NONE
    metric_sources: Dict[str, str] = field(default_factory=dict)
    resolution_method: Optional[str] = None
    profile: Optional[OrganizationProfile] = None
    attempts: List[ResolutionAttempt] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        # Exact value supersedes a range
        if self.employee_count is not None:
            self.employee_count_range = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase JSON envelope."""
        return {
            "organizationId": self.organization_id,
            "companyUrl": self.company_url,
            "slug": self.slug,
            "employeeCount": self.employee_count,
            "employeeCountRange": self.employee_count_range,
            "jobsPostedCount": self.jobs_posted_count,
            "dataSource": self.data_source,
            "metricSources": dict(self.metric_sources),
            "resolutionMethod": self.resolution_method,
            "profile": self.profile.to_dict() if self.profile else None,
            "attempts": [a.to_dict() for a in self.attempts],
            "fetchedAt": self.fetched_at.isoformat(),
        }
