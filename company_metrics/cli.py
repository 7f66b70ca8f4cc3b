"""
CLI Entry Point: Resolve LinkedIn company metrics

Usage:
    company-metrics microsoft
    company-metrics https://www.linkedin.com/company/microsoft/ --mode rendered-only
    company-metrics linkedin.com/company/acme --skip-rendered --timeout 60 --debug

Prints the result as JSON on stdout; diagnostics go to stderr.
Exit codes: 0 resolved (metrics may still be null), 1 invalid reference or
unresolvable organization, 2 bad arguments.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from company_metrics.common.config import Config
from company_metrics.common.error_handling import InvalidReferenceError, OrganizationNotResolvedError
from company_metrics.common.logger import set_global_debug_mode, setup_logging
from company_metrics.common.types import StrategyMode
from company_metrics.services.orchestrator import MetricsOrchestrator
from company_metrics.version import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="company-metrics",
        description="Resolve employee count and open job count for a LinkedIn company",
    )
    parser.add_argument(
        "reference",
        help="Company slug, relative path or LinkedIn company URL"
    )
    parser.add_argument(
        "--mode",
        default=None,
        choices=[m.value for m in StrategyMode],
        help=f"Strategy selection (default: {Config.STRATEGY_MODE})"
    )
    parser.add_argument(
        "--skip-rendered",
        action="store_true",
        default=None,
        help="Never launch a browser"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall deadline in seconds for all network calls"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    return parser


async def run(args: argparse.Namespace) -> dict:
    async with MetricsOrchestrator() as orchestrator:
        result = await orchestrator.resolve(
            args.reference,
            mode=args.mode,
            skip_rendered=args.skip_rendered,
            deadline_seconds=args.timeout,
        )
    return result.to_dict()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function."""
    args = build_parser().parse_args(argv)

    if args.debug:
        set_global_debug_mode(True)
    setup_logging(
        level="DEBUG" if args.debug else Config.LOG_LEVEL,
        format="json" if args.json_logs else Config.LOG_FORMAT,
    )

    for warning in Config.validate():
        print(f"Warning: {warning}", file=sys.stderr)
    if args.debug:
        print(f"Config: {json.dumps(Config.get_summary(), default=str)}", file=sys.stderr)

    try:
        payload = asyncio.run(run(args))
    except (InvalidReferenceError, OrganizationNotResolvedError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
