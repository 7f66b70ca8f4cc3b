"""
Company metrics resolver.

Resolves a LinkedIn company's employee count and open job count from a
loose company reference, trying structured queries, Voyager JSON endpoints
and rendered pages in turn.

Usage:
    import asyncio
    from company_metrics import resolve_company_metrics

    result = asyncio.run(resolve_company_metrics("microsoft"))
    print(result.to_dict())
"""

from typing import Optional

from company_metrics.common.error_handling import (
    CompanyMetricsError,
    InvalidReferenceError,
    OrganizationNotResolvedError,
)
from company_metrics.common.types import ResolutionResult
from company_metrics.services.orchestrator import MetricsOrchestrator
from company_metrics.version import __version__


async def resolve_company_metrics(
    reference: str,
    mode: Optional[str] = None,
    skip_rendered: Optional[bool] = None,
    deadline_seconds: Optional[float] = None,
) -> ResolutionResult:
    """One-shot resolution with default collaborators, closed afterwards."""
    async with MetricsOrchestrator() as orchestrator:
        return await orchestrator.resolve(
            reference,
            mode=mode,
            skip_rendered=skip_rendered,
            deadline_seconds=deadline_seconds,
        )


__all__ = [
    "__version__",
    "resolve_company_metrics",
    "MetricsOrchestrator",
    "ResolutionResult",
    "CompanyMetricsError",
    "InvalidReferenceError",
    "OrganizationNotResolvedError",
]
