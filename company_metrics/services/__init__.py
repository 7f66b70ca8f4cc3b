"""
Services module for company metrics resolution.

Identity resolution, the three acquisition strategies (structured,
semi-structured, rendered), the merge policy and the orchestrator that
drives them.
"""

from company_metrics.services.credentials import (
    AnonymousCredentialProvider,
    CredentialProvider,
    EnvCredentialProvider,
)
from company_metrics.services.identity_resolver import IdentityResolver, extract_slug, normalize_reference
from company_metrics.services.orchestrator import MetricsOrchestrator
from company_metrics.services.strategy_base import MetricStrategy, ResolutionContext

__all__ = [
    # Credentials
    "CredentialProvider",
    "EnvCredentialProvider",
    "AnonymousCredentialProvider",
    # Identity
    "IdentityResolver",
    "normalize_reference",
    "extract_slug",
    # Strategies
    "MetricStrategy",
    "ResolutionContext",
    "MetricsOrchestrator",
]
