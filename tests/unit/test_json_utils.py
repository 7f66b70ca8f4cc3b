"""
Unit tests for JSON total scanning and organization-ID extraction.
"""

from company_metrics.common.json_utils import (
    EMPLOYEE_TOTAL_KEYS,
    JOB_TOTAL_KEYS,
    TOTAL_KEYS,
    deep_find_totals,
    find_key,
    find_org_id,
    find_org_id_in_json,
    max_total,
)


class TestDeepFindTotals:
    """Tests for deep_find_totals."""

    def test_document_order_at_any_depth(self):
        payload = {"paging": {"Total": 12}, "data": [{"numResults": 3}, {"x": {"totalHits": 7}}]}
        assert deep_find_totals(payload) == [12, 3, 7]

    def test_keys_are_case_insensitive(self):
        assert deep_find_totals({"TOTALRESULTS": 5, "totalresults": 6}) == [5, 6]

    def test_booleans_and_strings_are_ignored(self):
        payload = {"total": True, "numResults": "44", "totalHits": 9}
        assert deep_find_totals(payload) == [9]

    def test_non_finite_floats_are_ignored(self):
        assert deep_find_totals({"total": float("nan"), "totalHits": 2.6}) == [3]

    def test_scalars_and_empty(self):
        assert deep_find_totals(None) == []
        assert deep_find_totals(5) == []
        assert deep_find_totals([]) == []

    def test_key_tables_are_metric_specific(self):
        payload = {"associatedMemberCount": 800, "jobCount": 9}
        assert deep_find_totals(payload, EMPLOYEE_TOTAL_KEYS) == [800]
        assert deep_find_totals(payload, JOB_TOTAL_KEYS) == [9]
        assert deep_find_totals(payload, TOTAL_KEYS) == []

    def test_deeply_nested_payload(self):
        """Test that depth is not limited by the recursion limit."""
        payload = {"total": 1}
        for _ in range(5000):
            payload = {"child": payload}
        assert deep_find_totals(payload) == [1]


class TestMaxTotal:
    """Tests for max_total."""

    def test_largest_total_wins(self):
        assert max_total({"a": {"total": 10}, "b": [{"total": 250}]}) == 250

    def test_minimum_filters_placeholders(self):
        assert max_total({"total": 0}) is None
        assert max_total({"total": 40}, minimum=100) is None

    def test_no_totals(self):
        assert max_total({"elements": []}) is None


class TestFindKey:
    """Tests for find_key."""

    def test_nested_lookup(self):
        record = {"included": [{"name": "Acme"}, {"staffCountRange": {"start": 201, "end": 500}}]}
        assert find_key(record, "staffCountRange") == {"start": 201, "end": 500}

    def test_missing_key(self):
        assert find_key({"a": [1, 2]}, "staffCount") is None


class TestFindOrgId:
    """Tests for organization-identifier scanning."""

    def test_organization_urn(self):
        html = '<code>{"dashEntityUrn":"urn:li:organization:1035"}</code>'
        assert find_org_id(html) == "1035"

    def test_pattern_priority(self):
        """Test that the organization URN wins over an earlier miniCompany URN."""
        html = "urn:li:fs_miniCompany:999 ... urn:li:organization:1035"
        assert find_org_id(html) == "1035"

    def test_mini_company_fallback(self):
        assert find_org_id("data-urn=urn:li:fs_miniCompany:2222") == "2222"

    def test_nothing_found(self):
        assert find_org_id("<html>no ids</html>") is None
        assert find_org_id("") is None

    def test_json_payload(self):
        payload = {"elements": [{"entityUrn": "urn:li:organization:77"}]}
        assert find_org_id_in_json(payload) == "77"
        assert find_org_id_in_json(None) is None
