"""
Unit tests for the GraphQL structured-query strategy.
"""

import json

import httpx
import pytest

from company_metrics.common.error_handling import (
    StrategyError,
    StructuredQueryError,
    UpstreamThrottledError,
)
from company_metrics.common.types import Confidence, MetricKind, StrategyName
from company_metrics.services.structured_strategy import (
    QUERY_CATALOGUE,
    StructuredQueryClient,
    StructuredQueryStrategy,
    graphql_headers,
)


def graphql_handler(responses, seen=None):
    """Route GraphQL POSTs by the `query` text to canned bodies."""

    def handler(request):
        body = json.loads(request.content)
        name = next(n for n, q in QUERY_CATALOGUE.items() if q == body["query"])
        if seen is not None:
            seen.append((name, body["variables"]))
        response = responses.get(name)
        if isinstance(response, httpx.Response):
            return response
        if response is None:
            return httpx.Response(500)
        return httpx.Response(200, json=response)

    return handler


ORGANIZATION = {
    "data": {
        "organization": {
            "name": "Acme",
            "universalName": "acme",
            "staffCount": 412,
            "staffCountRange": {"start": 201, "end": 500},
            "industryV2": {"name": "Software Development"},
            "website": "https://acme.example",
            "foundedOn": {"year": 1999},
            "headquarter": {"city": "Berlin", "country": "DE"},
        }
    }
}


def build_strategy(make_client, responses, seen=None):
    client = make_client(graphql_handler(responses, seen))
    return StructuredQueryStrategy(StructuredQueryClient(client))


class TestStructuredQueryClient:
    """Tests for StructuredQueryClient.execute."""

    @pytest.mark.asyncio
    async def test_returns_data_object(self, make_client, credentials, pacer):
        client = StructuredQueryClient(make_client(graphql_handler({"organization_basic": ORGANIZATION})), pacer)
        data = await client.execute("organization_basic", {"universalName": "acme"}, credentials)
        assert data["organization"]["name"] == "Acme"

    @pytest.mark.asyncio
    async def test_errors_key_is_failure(self, make_client, credentials, pacer):
        responses = {"organization_basic": {"data": {"organization": None}, "errors": [{"message": "denied"}]}}
        client = StructuredQueryClient(make_client(graphql_handler(responses)), pacer)
        with pytest.raises(StructuredQueryError, match="denied"):
            await client.execute("organization_basic", {"universalName": "acme"}, credentials)

    @pytest.mark.asyncio
    async def test_missing_data_is_failure(self, make_client, credentials, pacer):
        client = StructuredQueryClient(make_client(graphql_handler({"job_search_count": {"meta": 1}})), pacer)
        with pytest.raises(StructuredQueryError, match="no data"):
            await client.execute("job_search_count", {"companyUrns": []}, credentials)

    @pytest.mark.asyncio
    async def test_unknown_query(self, make_client, credentials, pacer):
        client = StructuredQueryClient(make_client(lambda request: httpx.Response(200, json={})), pacer)
        with pytest.raises(ValueError, match="Unknown structured query"):
            await client.execute("drop_tables", {}, credentials)

    def test_headers_carry_csrf_and_cookie(self, credentials):
        auth = credentials.build_auth_headers()
        headers = graphql_headers(auth)
        assert headers["X-LI-CSRF-TOKEN"] == auth.anti_forgery_token
        assert headers["Cookie"] == auth.cookie
        assert json.loads(headers["X-Li-Track"])["osName"] == "web"


class TestStructuredQueryStrategy:
    """Tests for StructuredQueryStrategy.collect."""

    @pytest.mark.asyncio
    async def test_employee_candidates(self, make_client, make_context):
        """Test mapping of staff count, band, insights and search totals."""
        seen = []
        strategy = build_strategy(make_client, {
            "organization_basic": ORGANIZATION,
            "organization_insights": {"data": {"organizationInsights": {"headcount": {"total": 418}}}},
            "people_search_count": {"data": {"peopleSearch": {"metadata": {"totalResultCount": 399}}}},
        }, seen)
        context = make_context()

        candidates = await strategy.collect(MetricKind.EMPLOYEE_COUNT, context)

        assert [name for name, _ in seen] == ["organization_basic", "organization_insights", "people_search_count"]
        assert seen[1][1] == {"orgUrn": "urn:li:organization:1234"}
        by_detail = {c.detail: c for c in candidates}
        assert by_detail["staffCount"].value == 412
        assert by_detail["staffCount"].confidence == Confidence.SEARCH_TOTAL
        assert by_detail["staffCountRange"].range == "201-500"
        assert by_detail["staffCountRange"].value is None
        assert by_detail["organizationInsights"].confidence == Confidence.EXACT
        assert by_detail["peopleSearch"].value == 399
        assert all(c.source == StrategyName.STRUCTURED for c in candidates)
        assert len(context.attempts) == 3

    @pytest.mark.asyncio
    async def test_profile_filled_once(self, make_client, make_context):
        strategy = build_strategy(make_client, {"organization_basic": ORGANIZATION})
        context = make_context()

        await strategy.collect(MetricKind.EMPLOYEE_COUNT, context)

        assert context.profile.name == "Acme"
        assert context.profile.industry == "Software Development"
        assert context.profile.founded_year == 1999
        assert context.profile.headquarters == "Berlin, DE"

    @pytest.mark.asyncio
    async def test_job_count(self, make_client, make_context):
        seen = []
        strategy = build_strategy(make_client, {
            "job_search_count": {"data": {"jobSearch": {"metadata": {"totalResultCount": 37}}}},
        }, seen)

        [candidate] = await strategy.collect(MetricKind.JOB_COUNT, make_context())

        assert seen == [("job_search_count", {"companyUrns": ["urn:li:organization:1234"]})]
        assert candidate.value == 37
        assert candidate.confidence == Confidence.SEARCH_TOTAL

    @pytest.mark.asyncio
    async def test_zero_job_total_is_not_a_candidate(self, make_client, make_context):
        strategy = build_strategy(make_client, {
            "job_search_count": {"data": {"jobSearch": {"metadata": {"totalResultCount": 0}}}},
        })
        assert await strategy.collect(MetricKind.JOB_COUNT, make_context()) == []

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_other_candidates(self, make_client, make_context):
        strategy = build_strategy(make_client, {
            "organization_basic": {"errors": [{"message": "nope"}]},
            "people_search_count": {"data": {"peopleSearch": {"metadata": {"totalResultCount": 88}}}},
        })
        context = make_context()

        candidates = await strategy.collect(MetricKind.EMPLOYEE_COUNT, context)

        assert [c.value for c in candidates] == [88]
        assert len(context.attempts.failures()) == 2

    @pytest.mark.asyncio
    async def test_all_queries_failing_raises(self, make_client, make_context):
        strategy = build_strategy(make_client, {})
        with pytest.raises(StrategyError, match="All structured queries failed"):
            await strategy.collect(MetricKind.EMPLOYEE_COUNT, make_context())

    @pytest.mark.asyncio
    async def test_throttle_propagates_immediately(self, make_client, make_context):
        seen = []
        strategy = build_strategy(make_client, {
            "organization_basic": httpx.Response(429),
            "organization_insights": {"data": {}},
        }, seen)

        with pytest.raises(UpstreamThrottledError):
            await strategy.collect(MetricKind.EMPLOYEE_COUNT, make_context())
        assert [name for name, _ in seen] == ["organization_basic"]

    def test_requires_healthy_session(self, make_client, make_context, anonymous):
        strategy = build_strategy(make_client, {})
        assert strategy.is_available(make_context()) is True
        assert strategy.is_available(make_context(creds=anonymous)) is False
