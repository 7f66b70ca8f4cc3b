"""
Metrics orchestrator.

Drives one resolution through its states:

    idle -> resolving_identity -> running_strategies -> merging -> done
    idle -> resolving_identity -> failed (organization ID unresolvable)

Both metrics run concurrently; within a metric the strategies run strictly
in priority order and the cascade stops as soon as an integer candidate
exists. Everything except identity failure degrades into the attempt log.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from company_metrics.common.config import Config
from company_metrics.common.deadline import Deadline
from company_metrics.common.error_handling import (
    SHORT_CIRCUIT_ERRORS,
    AttemptLog,
    AttemptTimer,
    CompanyMetricsError,
    UpstreamThrottledError,
)
from company_metrics.common.logger import ResolutionLogger, get_logger
from company_metrics.common.pacing import Pacer
from company_metrics.common.types import (
    SOURCE_BLOCKED,
    SOURCE_RATE_LIMITED,
    STRATEGY_PRIORITY,
    MetricKind,
    ResolutionResult,
    ResolutionState,
    StrategyMode,
    StrategyName,
)
from company_metrics.services.browser_session import BrowserSessionProvider, PlaywrightSessionManager
from company_metrics.services.credentials import CredentialProvider, default_credential_provider
from company_metrics.services.identity_resolver import IdentityResolver, normalize_reference
from company_metrics.services.merge_policy import MetricOutcome, merge_outcomes
from company_metrics.services.rendered_strategy import RenderedPageStrategy
from company_metrics.services.semi_structured_strategy import SemiStructuredStrategy
from company_metrics.services.strategy_base import MetricStrategy, ResolutionContext
from company_metrics.services.structured_strategy import StructuredQueryClient, StructuredQueryStrategy
from company_metrics.services.upstream_client import UpstreamClient

logger = logging.getLogger(__name__)

MODE_STRATEGIES: Dict[StrategyMode, tuple] = {
    StrategyMode.AUTO: STRATEGY_PRIORITY,
    StrategyMode.STRUCTURED_ONLY: (StrategyName.STRUCTURED,),
    StrategyMode.SEMI_STRUCTURED_ONLY: (StrategyName.SEMI_STRUCTURED,),
    StrategyMode.RENDERED_ONLY: (StrategyName.RENDERED,),
}


@dataclass
class ResolutionRun:
    """State of one resolve() call."""
    raw_reference: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: ResolutionState = ResolutionState.IDLE
    history: List[ResolutionState] = field(default_factory=lambda: [ResolutionState.IDLE])
    context: Optional[ResolutionContext] = None
    error: Optional[str] = None

    def transition(self, state: ResolutionState, log: ResolutionLogger) -> None:
        log.info(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


class MetricsOrchestrator:
    """
    Resolves employee and job counts for a company reference.

    Collaborators not passed in are built from Config; the ones built here
    are closed by aclose().
    """

    def __init__(
        self,
        credentials: Optional[CredentialProvider] = None,
        client: Optional[UpstreamClient] = None,
        session_provider: Optional[BrowserSessionProvider] = None,
        strategies: Optional[Iterable[MetricStrategy]] = None,
        identity_resolver: Optional[IdentityResolver] = None,
        pacer: Optional[Pacer] = None,
        strategy_pacer: Optional[Pacer] = None,
    ):
        self.credentials = credentials or default_credential_provider()
        self._owns_client = client is None
        self.client = client or UpstreamClient()
        self._owns_sessions = session_provider is None
        self.session_provider = session_provider or PlaywrightSessionManager(self.credentials)
        self.pacer = pacer or Pacer(Config.PACING_MIN_SECONDS, Config.PACING_MAX_SECONDS)
        self.strategy_pacer = strategy_pacer or Pacer(
            Config.STRATEGY_PAUSE_SECONDS, Config.STRATEGY_PAUSE_SECONDS * 2
        )
        self.identity_resolver = identity_resolver or IdentityResolver(self.client, self.pacer)

        if strategies is None:
            query_client = StructuredQueryClient(self.client, self.pacer)
            strategies = [
                StructuredQueryStrategy(query_client),
                SemiStructuredStrategy(self.client, self.pacer),
                RenderedPageStrategy(self.session_provider, self.pacer),
            ]
        self.strategies: Dict[StrategyName, MetricStrategy] = {s.name: s for s in strategies}
        self.last_run: Optional[ResolutionRun] = None

    async def __aenter__(self) -> "MetricsOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_sessions:
            await self.session_provider.close()
        if self._owns_client:
            await self.client.aclose()

    def select_strategies(
        self,
        mode: StrategyMode,
        skip_rendered: bool,
        context: ResolutionContext,
        log: Optional[ResolutionLogger] = None,
    ) -> List[MetricStrategy]:
        """Strategies to run, in priority order, for this call."""
        log = log or get_logger(__name__, strategy="orchestrator")
        allowed = MODE_STRATEGIES[mode]
        selected = []
        for name in STRATEGY_PRIORITY:
            strategy = self.strategies.get(name)
            if strategy is None or name not in allowed:
                continue
            if name == StrategyName.RENDERED and skip_rendered:
                log.info("Rendered strategy skipped by caller")
                continue
            if not strategy.is_available(context):
                log.info(f"{name.value} strategy skipped: no healthy LinkedIn session")
                continue
            selected.append(strategy)
        return selected

    async def resolve(
        self,
        reference: str,
        mode: Optional[str] = None,
        skip_rendered: Optional[bool] = None,
        deadline_seconds: Optional[float] = None,
    ) -> ResolutionResult:
        """
        Resolve both metrics for a company reference.

        Args:
            reference: Bare slug, relative path or LinkedIn company URL
            mode: StrategyMode value (defaults to STRATEGY_MODE)
            skip_rendered: Skip the browser strategy (defaults to SKIP_RENDERED)
            deadline_seconds: Overall deadline for every network call

        Returns:
            ResolutionResult; metrics are null when nothing worked

        Raises:
            InvalidReferenceError: Reference is not a LinkedIn company reference
            OrganizationNotResolvedError: Organization ID could not be resolved
        """
        strategy_mode = StrategyMode.parse(mode if mode is not None else Config.STRATEGY_MODE)
        skip = Config.SKIP_RENDERED if skip_rendered is None else skip_rendered
        deadline = Deadline(seconds=deadline_seconds)

        run = ResolutionRun(raw_reference=str(reference))
        self.last_run = run
        log = get_logger(__name__, run_id=run.run_id, strategy="orchestrator")

        run.transition(ResolutionState.RESOLVING_IDENTITY, log)
        try:
            normalized = normalize_reference(reference)
            identity = await self.identity_resolver.resolve_org_id(
                normalized, self.credentials, deadline, run.run_id
            )
        except CompanyMetricsError as e:
            run.error = str(e)
            run.transition(ResolutionState.FAILED, log)
            raise

        context = ResolutionContext(
            reference=normalized,
            identity=identity,
            credentials=self.credentials,
            attempts=AttemptLog(),
            deadline=deadline,
            run_id=run.run_id,
        )
        run.context = context

        run.transition(ResolutionState.RUNNING_STRATEGIES, log)
        strategies = self.select_strategies(strategy_mode, skip, context, log)
        log.info(
            f"Organization {identity.organization_id}; strategies: "
            f"{', '.join(s.name.value for s in strategies) or 'none'}"
        )
        employees, jobs = await asyncio.gather(
            self.run_metric(MetricKind.EMPLOYEE_COUNT, strategies, context),
            self.run_metric(MetricKind.JOB_COUNT, strategies, context),
        )

        run.transition(ResolutionState.MERGING, log)
        result = merge_outcomes(
            normalized,
            identity,
            employees,
            jobs,
            attempts=context.attempts.snapshot(),
            profile=context.profile,
        )
        run.transition(ResolutionState.DONE, log)
        log.info(
            f"employees={result.employee_count} range={result.employee_count_range} "
            f"jobs={result.jobs_posted_count} source={result.data_source}"
        )
        return result

    async def run_metric(
        self,
        metric: MetricKind,
        strategies: List[MetricStrategy],
        context: ResolutionContext,
    ) -> MetricOutcome:
        """One metric's cascade over the selected strategies."""
        log = context.logger(__name__, metric.value)
        outcome = MetricOutcome(metric=metric)

        for index, strategy in enumerate(strategies):
            if context.deadline.expired:
                log.warning(f"Deadline exhausted before {strategy.name.value}")
                break
            if index > 0:
                await self.strategy_pacer.pause(f"before {strategy.name.value}")

            timer = AttemptTimer()
            try:
                found = await strategy.collect(metric, context)
            except SHORT_CIRCUIT_ERRORS as e:
                context.attempts.record_failure(strategy.name.value, e, timer.stop(), metric.value, "strategy")
                outcome.interrupted = (
                    SOURCE_RATE_LIMITED if isinstance(e, UpstreamThrottledError) else SOURCE_BLOCKED
                )
                log.warning(f"{strategy.name.value} stopped the cascade: {e}")
                break
            except Exception as e:
                context.attempts.record_failure(strategy.name.value, e, timer.stop(), metric.value, "strategy")
                log.warning(f"{strategy.name.value} failed: {e}")
                continue

            context.attempts.record_success(strategy.name.value, timer.stop(), metric.value, "strategy")
            outcome.candidates.extend(found)
            if outcome.has_value:
                log.info(f"{strategy.name.value} produced a value; cascade complete")
                break

        return outcome
