"""
Merge policy: pick one final value per metric from competing candidates.

Ranking, highest first:
1. Confidence (EXACT > SEARCH_TOTAL > RANGE_ONLY > APPROXIMATE)
2. Strategy priority (structured > semi_structured > rendered)
3. Arrival order (earlier wins)

The winner's strategy becomes the metric's provenance tag. A metric whose
cascade was cut short by throttling or blocking is tagged rate_limited /
blocked instead, while keeping any value gathered before the interruption.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from company_metrics.common.types import (
    SOURCE_NONE,
    STRATEGY_PRIORITY,
    CompanyReference,
    MetricCandidate,
    MetricKind,
    OrganizationIdentity,
    OrganizationProfile,
    ResolutionAttempt,
    ResolutionResult,
)


@dataclass
class MetricOutcome:
    """Everything one metric's cascade produced."""
    metric: MetricKind
    candidates: List[MetricCandidate] = field(default_factory=list)
    interrupted: Optional[str] = None  # SOURCE_RATE_LIMITED / SOURCE_BLOCKED

    @property
    def has_value(self) -> bool:
        return any(c.is_exact_value for c in self.candidates)


def select_candidate(candidates: List[MetricCandidate]) -> Optional[MetricCandidate]:
    """Highest-ranked candidate, or None for an empty list."""
    if not candidates:
        return None
    ranked = sorted(
        enumerate(candidates),
        key=lambda item: (
            -int(item[1].confidence),
            STRATEGY_PRIORITY.index(item[1].source),
            item[0],
        ),
    )
    return ranked[0][1]


def metric_tag(outcome: MetricOutcome, winner: Optional[MetricCandidate]) -> str:
    """Provenance tag for one metric."""
    if outcome.interrupted:
        return outcome.interrupted
    if winner is None:
        return SOURCE_NONE
    return winner.source.value


def merge_outcomes(
    reference: CompanyReference,
    identity: OrganizationIdentity,
    employees: MetricOutcome,
    jobs: MetricOutcome,
    attempts: Optional[List[ResolutionAttempt]] = None,
    profile: Optional[OrganizationProfile] = None,
) -> ResolutionResult:
    """
    Combine both metric outcomes into the terminal result.

    An integer employee winner clears the range; a range-only winner leaves
    the count null. Job counts only take integer candidates.
    """
    employee_winner = select_candidate(employees.candidates)
    job_winner = select_candidate([c for c in jobs.candidates if c.is_exact_value])

    employee_count = None
    employee_range = None
    if employee_winner is not None:
        if employee_winner.is_exact_value:
            employee_count = employee_winner.value
        else:
            employee_range = employee_winner.range

    sources: Dict[str, str] = {
        MetricKind.EMPLOYEE_COUNT.value: metric_tag(employees, employee_winner),
        MetricKind.JOB_COUNT.value: metric_tag(jobs, job_winner),
    }
    employee_tag = sources[MetricKind.EMPLOYEE_COUNT.value]
    data_source = employee_tag if employee_tag != SOURCE_NONE else sources[MetricKind.JOB_COUNT.value]

    return ResolutionResult(
        organization_id=identity.organization_id,
        company_url=reference.url,
        slug=reference.slug,
        employee_count=employee_count,
        employee_count_range=employee_range,
        jobs_posted_count=job_winner.value if job_winner else None,
        data_source=data_source,
        metric_sources=sources,
        resolution_method=identity.method.value,
        profile=profile,
        attempts=list(attempts or []),
    )
