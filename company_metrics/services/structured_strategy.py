"""
Structured-Query Strategy

Typed GraphQL queries against LinkedIn's single web GraphQL endpoint. When a
session is healthy this is the most precise channel: the insights query
returns the organization's own headcount figure.

Endpoint:
- POST https://www.linkedin.com/voyager/api/graphql  {query, variables}
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from company_metrics.common.config import Config
from company_metrics.common.deadline import Deadline
from company_metrics.common.error_handling import (
    SHORT_CIRCUIT_ERRORS,
    CompanyMetricsError,
    StrategyError,
    StructuredQueryError,
    describe_error,
)
from company_metrics.common.number_parser import format_range, parse_human_number
from company_metrics.common.pacing import Pacer
from company_metrics.common.types import (
    Confidence,
    MetricCandidate,
    MetricKind,
    OrganizationProfile,
    StrategyName,
)
from company_metrics.services.credentials import AuthHeaders, CredentialProvider
from company_metrics.services.strategy_base import MetricStrategy, ResolutionContext
from company_metrics.services.upstream_client import UpstreamClient

logger = logging.getLogger(__name__)

GRAPHQL_ENDPOINT = "https://www.linkedin.com/voyager/api/graphql"

ORGANIZATION_BASIC_QUERY = """
query GetCompanyInfo($universalName: String!) {
  organization(universalName: $universalName) {
    name
    universalName
    description
    website
    industryV2 { name }
    staffCount
    staffCountRange { start end }
    foundedOn { year }
    headquarter { city country }
  }
}
"""

ORGANIZATION_URN_QUERY = """
query GetOrgUrn($universalName: String!) {
  organization(universalName: $universalName) {
    entityUrn
  }
}
"""

ORGANIZATION_INSIGHTS_QUERY = """
query GetEmployeeInsights($orgUrn: String!) {
  organizationInsights(organizationUrn: $orgUrn) {
    headcount {
      total
      growth { percentage timeframe }
    }
  }
}
"""

PEOPLE_SEARCH_COUNT_QUERY = """
query GetPeopleCount($companyUrn: String!) {
  peopleSearch(query: {currentCompany: [$companyUrn]}, start: 0, count: 1) {
    metadata { totalResultCount }
  }
}
"""

JOB_SEARCH_COUNT_QUERY = """
query GetJobPostings($companyUrns: [String!]!) {
  jobSearch(
    origin: JOBS_HOME_PAGE
    query: {companyFilter: {values: $companyUrns}}
    start: 0
    count: 1
  ) {
    metadata { totalResultCount }
  }
}
"""

QUERY_CATALOGUE: Dict[str, str] = {
    "organization_basic": ORGANIZATION_BASIC_QUERY,
    "organization_urn": ORGANIZATION_URN_QUERY,
    "organization_insights": ORGANIZATION_INSIGHTS_QUERY,
    "people_search_count": PEOPLE_SEARCH_COUNT_QUERY,
    "job_search_count": JOB_SEARCH_COUNT_QUERY,
}


def graphql_headers(auth: AuthHeaders) -> Dict[str, str]:
    """Headers for the GraphQL endpoint; the csrf token is echoed in JSESSIONID."""
    track = {
        "clientVersion": "1.13.0",
        "mpVersion": "1.13.0",
        "osName": "web",
        "timezoneOffset": int(time.localtime().tm_gmtoff / -60),
        "timezone": time.strftime("%Z"),
    }
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "X-Requested-With": "XMLHttpRequest",
        "X-Li-Lang": "en_US",
        "X-Li-Track": json.dumps(track),
        "X-LI-CSRF-TOKEN": auth.anti_forgery_token,
        "User-Agent": auth.user_agent,
        "Referer": "https://www.linkedin.com/",
        "Origin": "https://www.linkedin.com",
        "Sec-Fetch-Dest": "empty",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "same-origin",
    }
    if auth.cookie:
        headers["Cookie"] = auth.cookie
    return headers


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class StructuredQueryClient:
    """Executes catalogued GraphQL queries."""

    def __init__(
        self,
        client: UpstreamClient,
        pacer: Optional[Pacer] = None,
        endpoint: str = GRAPHQL_ENDPOINT,
    ):
        self.client = client
        self.pacer = pacer or Pacer(Config.PACING_MIN_SECONDS, Config.PACING_MAX_SECONDS)
        self.endpoint = endpoint

    async def execute(
        self,
        query_name: str,
        variables: Dict[str, Any],
        credentials: CredentialProvider,
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, Any]:
        """
        Run one catalogued query and return its `data` object.

        Raises:
            ValueError: Unknown query name
            StructuredQueryError: Body carries a top-level `errors` collection
                or no `data` object
            UpstreamHTTPError / AuthRequiredError: see UpstreamClient
        """
        if query_name not in QUERY_CATALOGUE:
            raise ValueError(f"Unknown structured query '{query_name}'")

        await self.pacer.pause(f"before {query_name}")
        headers = graphql_headers(credentials.build_auth_headers())
        payload = {"query": QUERY_CATALOGUE[query_name], "variables": variables}

        logger.debug(f"Executing structured query {query_name} with {sorted(variables)}")
        body = await self.client.post_json(self.endpoint, payload, headers=headers, deadline=deadline)

        if not isinstance(body, dict):
            raise StructuredQueryError(f"{query_name}: unexpected response shape {type(body).__name__}")
        if body.get("errors") is not None:
            raise StructuredQueryError(f"{query_name} returned errors: {json.dumps(body['errors'])[:300]}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise StructuredQueryError(f"{query_name}: response has no data object")
        return data


class StructuredQueryStrategy(MetricStrategy):
    """Metric candidates from the structured query catalogue."""

    name = StrategyName.STRUCTURED
    requires_credentials = True

    def __init__(self, query_client: StructuredQueryClient, min_total: Optional[int] = None):
        self.query_client = query_client
        self.min_total = Config.MIN_PLAUSIBLE_TOTAL if min_total is None else min_total

    def query_plan(self, metric: MetricKind, context: ResolutionContext) -> List[Tuple[str, Dict[str, Any]]]:
        """Queries to run for a metric, in order."""
        urn = context.identity.urn
        if metric == MetricKind.JOB_COUNT:
            return [("job_search_count", {"companyUrns": [urn]})]
        return [
            ("organization_basic", {"universalName": context.reference.slug}),
            ("organization_insights", {"orgUrn": urn}),
            ("people_search_count", {"companyUrn": urn}),
        ]

    async def collect(self, metric: MetricKind, context: ResolutionContext) -> List[MetricCandidate]:
        log = context.logger(__name__, self.name.value)
        plan = self.query_plan(metric, context)
        candidates: List[MetricCandidate] = []
        errors: List[str] = []

        for query_name, variables in plan:
            try:
                with context.attempts.track(self.name.value, metric.value, query_name):
                    data = await self.query_client.execute(
                        query_name, variables, context.credentials, context.deadline
                    )
            except SHORT_CIRCUIT_ERRORS:
                raise
            except CompanyMetricsError as e:
                log.warning(f"{query_name} failed: {e}")
                errors.append(f"{query_name}: {describe_error(e)}")
                continue

            found = self.candidates_from(query_name, metric, data, context)
            log.debug(f"{query_name} produced {len(found)} candidate(s)")
            candidates.extend(found)

        if len(errors) == len(plan):
            raise StrategyError(f"All structured queries failed: {'; '.join(errors)}")
        return candidates

    def _total(self, value: Any) -> Optional[int]:
        number = parse_human_number(value)
        if number is None or number < self.min_total:
            return None
        return number

    def candidates_from(
        self,
        query_name: str,
        metric: MetricKind,
        data: Dict[str, Any],
        context: ResolutionContext,
    ) -> List[MetricCandidate]:
        """Map one query's data object onto candidates."""
        source = self.name
        candidates = []

        if query_name == "organization_basic":
            org = data.get("organization")
            if not isinstance(org, dict):
                return []
            if context.profile is None:
                context.profile = profile_from_organization(org)
            staff = self._total(org.get("staffCount"))
            if staff is not None:
                candidates.append(MetricCandidate(
                    metric, source, Confidence.SEARCH_TOTAL, value=staff, detail="staffCount"
                ))
            band = org.get("staffCountRange")
            band_text = format_range(band.get("start"), band.get("end")) if isinstance(band, dict) else None
            if band_text:
                candidates.append(MetricCandidate(
                    metric, source, Confidence.RANGE_ONLY, range=band_text, detail="staffCountRange"
                ))

        elif query_name == "organization_insights":
            total = self._total(_dig(data, "organizationInsights", "headcount", "total"))
            if total is not None:
                candidates.append(MetricCandidate(
                    metric, source, Confidence.EXACT, value=total, detail="organizationInsights"
                ))

        elif query_name == "people_search_count":
            total = self._total(_dig(data, "peopleSearch", "metadata", "totalResultCount"))
            if total is not None:
                candidates.append(MetricCandidate(
                    metric, source, Confidence.SEARCH_TOTAL, value=total, detail="peopleSearch"
                ))

        elif query_name == "job_search_count":
            total = self._total(_dig(data, "jobSearch", "metadata", "totalResultCount"))
            if total is not None:
                candidates.append(MetricCandidate(
                    metric, source, Confidence.SEARCH_TOTAL, value=total, detail="jobSearch"
                ))

        return candidates


def profile_from_organization(org: Dict[str, Any]) -> OrganizationProfile:
    """Descriptive facts from an `organization` object."""
    headquarters = None
    hq = org.get("headquarter")
    if isinstance(hq, dict):
        parts = [p for p in (hq.get("city"), hq.get("country")) if p]
        headquarters = ", ".join(parts) or None

    return OrganizationProfile(
        name=org.get("name"),
        industry=_dig(org, "industryV2", "name"),
        website=org.get("website"),
        founded_year=parse_human_number(_dig(org, "foundedOn", "year")),
        headquarters=headquarters,
    )
