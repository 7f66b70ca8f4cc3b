"""
Unit tests for the company-metrics command line.
"""

import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from company_metrics import cli
from company_metrics.common.error_handling import InvalidReferenceError, OrganizationNotResolvedError
from company_metrics.common.types import ResolutionResult


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def fake_orchestrator(result=None, error=None):
    """Patch target standing in for MetricsOrchestrator()."""
    orchestrator = MagicMock()
    orchestrator.__aenter__ = AsyncMock(return_value=orchestrator)
    orchestrator.__aexit__ = AsyncMock(return_value=None)
    orchestrator.resolve = AsyncMock(return_value=result, side_effect=error)
    return MagicMock(return_value=orchestrator), orchestrator


class TestMain:
    """Tests for cli.main exit codes and output."""

    def test_prints_result_json(self, capsys):
        result = ResolutionResult(
            organization_id="1035",
            company_url="https://www.linkedin.com/company/microsoft/",
            slug="microsoft",
            employee_count=228000,
            jobs_posted_count=4120,
            data_source="structured",
        )
        factory, orchestrator = fake_orchestrator(result=result)

        with patch.object(cli, "MetricsOrchestrator", factory):
            code = cli.main(["microsoft", "--mode", "structured-only", "--timeout", "30"])

        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["employeeCount"] == 228000
        assert payload["jobsPostedCount"] == 4120
        orchestrator.resolve.assert_awaited_once_with(
            "microsoft", mode="structured-only", skip_rendered=None, deadline_seconds=30.0
        )
        orchestrator.__aexit__.assert_awaited_once()

    @pytest.mark.parametrize("error", [
        InvalidReferenceError("Not a LinkedIn URL: https://example.com/acme"),
        OrganizationNotResolvedError("https://www.linkedin.com/company/acme/", ["page-scan: HTTP 404"]),
    ])
    def test_resolution_failures_exit_1(self, capsys, error):
        factory, _ = fake_orchestrator(error=error)

        with patch.object(cli, "MetricsOrchestrator", factory):
            code = cli.main(["acme", "--skip-rendered"])

        assert code == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.strip().splitlines()[-1].startswith("Error: ")

    def test_bad_mode_is_argparse_error(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["acme", "--mode", "fastest"])
        assert exc_info.value.code == 2

    def test_parser_defaults(self):
        args = cli.build_parser().parse_args(["acme"])
        assert args.mode is None
        assert args.skip_rendered is None
        assert args.timeout is None
