"""
Semi-Structured Strategy

Undocumented Voyager JSON endpoints plus plain (unrendered) page fetches.
Responses have no stable schema, so totals are located with
deep_find_totals() and the per-metric key allowlists.

Employee count, in order until one yields a positive value:
1. organization/companies/{id}/people?count=0   org-scoped people total (EXACT)
2. search/blended (people filter)               broad search total
3. search/cluster (guided people cluster)       broad search total
4. organization/companies/{id}                  staffCountRange / staffCount
5. /company/{slug}/people/ markup               "N associated members" (EXACT)

Job count:
1. jobs/search (two parameter variants)
2. /company/{id}/jobs/ markup                   "N results" / "has N job openings"
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from company_metrics.common.config import Config
from company_metrics.common.error_handling import (
    SHORT_CIRCUIT_ERRORS,
    AuthRequiredError,
    CompanyMetricsError,
)
from company_metrics.common.json_utils import METRIC_TOTAL_KEYS, find_key, max_total
from company_metrics.common.number_parser import format_range, parse_human_number
from company_metrics.common.pacing import Pacer
from company_metrics.common.patterns import (
    EMPLOYEE_MARKUP_RULES,
    JOB_MARKUP_RULES,
    PatternRule,
    first_match_in,
    visible_text,
)
from company_metrics.common.types import (
    Confidence,
    MetricCandidate,
    MetricKind,
    StrategyName,
)
from company_metrics.services.credentials import page_headers, voyager_headers
from company_metrics.services.strategy_base import MetricStrategy, ResolutionContext
from company_metrics.services.upstream_client import UpstreamClient

logger = logging.getLogger(__name__)

VOYAGER_API = "https://www.linkedin.com/voyager/api"

# Errors that must leave the strategy instead of degrading to "no data"
PROPAGATED_ERRORS = SHORT_CIRCUIT_ERRORS + (AuthRequiredError,)


@dataclass(frozen=True)
class TotalEndpoint:
    """A JSON endpoint whose payload carries a count-shaped total."""
    label: str
    url_template: str
    confidence: Confidence

    def url(self, org_id: str) -> str:
        return self.url_template.format(id=org_id)


EMPLOYEE_ENDPOINTS = (
    TotalEndpoint(
        "company-people",
        VOYAGER_API + "/organization/companies/{id}/people?count=0",
        Confidence.EXACT,
    ),
    TotalEndpoint(
        "blended-people-search",
        VOYAGER_API + "/search/blended?count=1"
        "&filters=List(resultType-%3EPEOPLE,currentCompany-%3E{id})"
        "&origin=COMPANY_PAGE_CANNED_SEARCH&q=all",
        Confidence.SEARCH_TOTAL,
    ),
    TotalEndpoint(
        "guided-people-cluster",
        VOYAGER_API + "/search/cluster?count=0"
        "&guides=List(currentCompany-%3E{id})"
        "&origin=COMPANY_PAGE_CANNED_SEARCH&q=guided",
        Confidence.SEARCH_TOTAL,
    ),
)

ORGANIZATION_RECORD_URL = VOYAGER_API + "/organization/companies/{id}"

JOB_ENDPOINTS = (
    TotalEndpoint(
        "jobs-search-filters",
        VOYAGER_API + "/jobs/search?count=1&filters=List(companyIds-%3E{id})&q=jobsSearch",
        Confidence.SEARCH_TOTAL,
    ),
    TotalEndpoint(
        "jobs-search-company-ids",
        VOYAGER_API + "/jobs/search?count=1&companyIds=List({id})&q=jobSearch",
        Confidence.SEARCH_TOTAL,
    ),
)

JOBS_PAGE_URL = "https://www.linkedin.com/company/{id}/jobs/"


class SemiStructuredStrategy(MetricStrategy):
    """Metric candidates from Voyager JSON and fetched page markup."""

    name = StrategyName.SEMI_STRUCTURED
    requires_credentials = True

    def __init__(
        self,
        client: UpstreamClient,
        pacer: Optional[Pacer] = None,
        min_total: Optional[int] = None,
    ):
        self.client = client
        self.pacer = pacer or Pacer(Config.PACING_MIN_SECONDS, Config.PACING_MAX_SECONDS)
        self.min_total = Config.MIN_PLAUSIBLE_TOTAL if min_total is None else min_total

    async def collect(self, metric: MetricKind, context: ResolutionContext) -> List[MetricCandidate]:
        if metric == MetricKind.EMPLOYEE_COUNT:
            return await self.employee_candidates(context)
        return await self.job_candidates(context)

    async def _call(
        self,
        operation: str,
        metric: MetricKind,
        context: ResolutionContext,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Paced, recorded upstream call.

        Returns None when the call failed; throttling, blocking and auth
        redirects are re-raised.
        """
        await self.pacer.pause(f"before {operation}")
        try:
            with context.attempts.track(self.name.value, metric.value, operation):
                return await fetch()
        except PROPAGATED_ERRORS:
            raise
        except CompanyMetricsError as e:
            context.logger(__name__, self.name.value).info(f"{operation} gave no data: {e}")
            return None

    async def _fetch_json(self, url: str, context: ResolutionContext) -> Any:
        headers = voyager_headers(context.credentials.build_auth_headers(), referer=context.reference.url)
        return await self.client.fetch_json(url, headers=headers, deadline=context.deadline)

    async def _fetch_page(self, url: str, context: ResolutionContext) -> str:
        headers = page_headers(context.credentials.build_auth_headers())
        return await self.client.fetch_text(url, headers=headers, deadline=context.deadline)

    async def _endpoint_total(
        self,
        endpoint: TotalEndpoint,
        metric: MetricKind,
        context: ResolutionContext,
    ) -> Optional[MetricCandidate]:
        url = endpoint.url(context.organization_id)
        payload = await self._call(endpoint.label, metric, context, lambda: self._fetch_json(url, context))
        if payload is None:
            return None
        total = max_total(payload, METRIC_TOTAL_KEYS[metric], minimum=self.min_total)
        if total is None:
            return None
        return MetricCandidate(metric, self.name, endpoint.confidence, value=total, detail=endpoint.label)

    def _markup_candidate(
        self,
        html: Optional[str],
        rules: tuple,
        metric: MetricKind,
        label: str,
    ) -> Optional[MetricCandidate]:
        if not html:
            return None
        hit = first_match_in([visible_text(html), html], rules, minimum=self.min_total)
        if hit is None:
            return None
        rule: PatternRule = hit.rule
        return MetricCandidate(
            metric, self.name, rule.confidence, value=hit.value, detail=f"{label}:{rule.label}"
        )

    async def employee_candidates(self, context: ResolutionContext) -> List[MetricCandidate]:
        """Employee cascade; stops at the first positive value."""
        metric = MetricKind.EMPLOYEE_COUNT
        log = context.logger(__name__, self.name.value)
        candidates: List[MetricCandidate] = []

        for endpoint in EMPLOYEE_ENDPOINTS:
            candidate = await self._endpoint_total(endpoint, metric, context)
            if candidate:
                log.info(f"Employee total {candidate.value} via {endpoint.label}")
                return [candidate]

        record_url = ORGANIZATION_RECORD_URL.format(id=context.organization_id)
        record = await self._call(
            "organization-record", metric, context, lambda: self._fetch_json(record_url, context)
        )
        if record is not None:
            candidates.extend(self.organization_record_candidates(record))
            if any(c.is_exact_value for c in candidates):
                return candidates

        people_url = context.reference.sub_page("people")
        html = await self._call("people-page", metric, context, lambda: self._fetch_page(people_url, context))
        candidate = self._markup_candidate(html, EMPLOYEE_MARKUP_RULES, metric, "people-page")
        if candidate:
            log.info(f"Employee total {candidate.value} via people page ({candidate.detail})")
            candidates.append(candidate)

        return candidates

    def organization_record_candidates(self, record: Any) -> List[MetricCandidate]:
        """staffCountRange (RANGE_ONLY) and staffCount (SEARCH_TOTAL) from an org record."""
        metric = MetricKind.EMPLOYEE_COUNT
        candidates = []

        band = find_key(record, "staffCountRange")
        band_text = format_range(band.get("start"), band.get("end")) if isinstance(band, dict) else None
        if band_text:
            candidates.append(MetricCandidate(
                metric, self.name, Confidence.RANGE_ONLY, range=band_text, detail="staffCountRange"
            ))

        staff = parse_human_number(find_key(record, "staffCount"))
        if staff is not None and staff >= self.min_total:
            candidates.append(MetricCandidate(
                metric, self.name, Confidence.SEARCH_TOTAL, value=staff, detail="staffCount"
            ))
        return candidates

    async def job_candidates(self, context: ResolutionContext) -> List[MetricCandidate]:
        """Jobs-search variants, then the jobs page markup."""
        metric = MetricKind.JOB_COUNT
        log = context.logger(__name__, self.name.value)

        for endpoint in JOB_ENDPOINTS:
            candidate = await self._endpoint_total(endpoint, metric, context)
            if candidate:
                log.info(f"Job total {candidate.value} via {endpoint.label}")
                return [candidate]

        jobs_url = JOBS_PAGE_URL.format(id=context.organization_id)
        html = await self._call("jobs-page", metric, context, lambda: self._fetch_page(jobs_url, context))
        candidate = self._markup_candidate(html, JOB_MARKUP_RULES, metric, "jobs-page")
        if candidate:
            log.info(f"Job total {candidate.value} via jobs page ({candidate.detail})")
            return [candidate]
        return []
