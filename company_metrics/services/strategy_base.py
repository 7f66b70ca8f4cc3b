"""
Strategy Base Module

Shared interface for the three metric acquisition channels:
- structured (GraphQL queries)
- semi_structured (Voyager JSON endpoints)
- rendered (browser-rendered pages)

Each channel implements MetricStrategy so the orchestrator can run them
interchangeably, in priority order, for either metric.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from company_metrics.common.deadline import Deadline
from company_metrics.common.error_handling import AttemptLog
from company_metrics.common.logger import ResolutionLogger, get_logger
from company_metrics.common.types import (
    CompanyReference,
    MetricCandidate,
    MetricKind,
    OrganizationIdentity,
    OrganizationProfile,
    StrategyName,
)
from company_metrics.services.credentials import CredentialProvider


@dataclass
class ResolutionContext:
    """Per-call state handed to every strategy; never shared across calls."""
    reference: CompanyReference
    identity: OrganizationIdentity
    credentials: CredentialProvider
    attempts: AttemptLog = field(default_factory=AttemptLog)
    deadline: Deadline = field(default_factory=Deadline.none)
    profile: Optional[OrganizationProfile] = None
    run_id: Optional[str] = None

    @property
    def organization_id(self) -> str:
        return self.identity.organization_id

    def logger(self, name: str, strategy: Optional[str] = None) -> ResolutionLogger:
        return get_logger(name, run_id=self.run_id, strategy=strategy)


class MetricStrategy(ABC):
    """Abstract base class for metric acquisition strategies."""

    name: StrategyName
    # Strategies that need a logged-in session are skipped without one
    requires_credentials: bool = True

    def is_available(self, context: ResolutionContext) -> bool:
        """True when this strategy can run for the given call."""
        if self.requires_credentials:
            return context.credentials.is_healthy()
        return True

    @abstractmethod
    async def collect(self, metric: MetricKind, context: ResolutionContext) -> List[MetricCandidate]:
        """
        Gather candidates for one metric.

        Args:
            metric: Which metric to resolve
            context: Per-call resolution state (identity, credentials, attempt log)

        Returns:
            Candidates in discovery order (empty when nothing was found)

        Raises:
            UpstreamThrottledError / UpstreamBlockedError: ends the metric's cascade
            StrategyError: the strategy failed outright
        """
        pass
