"""Dependency container for the application.

The container is built once per process and handed to the application
factory. It owns the domain providers and the shared stores used by the
pipeline, so tests can build an application around their own instances.

Domains are wired leaves first: the AI service aggregates the four data
domains, and the dashboard aggregates those plus the AI service.
"""

from dataclasses import dataclass

from contendo.api.constants import API_PREFIX
from contendo.core.config import Settings
from contendo.domains.providers import DomainRouteProvider
from contendo.infrastructure.rate_limit_store import FixedWindowRateLimiter
from contendo.infrastructure.session_store import InMemorySessionStore, SessionStore


@dataclass
class ServiceContainer:
    """Domain providers and shared infrastructure of one application."""

    healthcare: DomainRouteProvider
    training: DomainRouteProvider
    arbiter: DomainRouteProvider
    crm: DomainRouteProvider
    financial: DomainRouteProvider
    ai: DomainRouteProvider
    dashboard: DomainRouteProvider
    rate_limiter: FixedWindowRateLimiter
    session_store: SessionStore

    def domain_mounts(self) -> list[tuple[str, DomainRouteProvider]]:
        """Return ``(prefix, provider)`` pairs in mount order."""
        providers = (
            self.healthcare,
            self.training,
            self.arbiter,
            self.crm,
            self.financial,
            self.ai,
            self.dashboard,
        )
        return [(f"{API_PREFIX}/{provider.name}", provider) for provider in providers]


def build_container(settings: Settings) -> ServiceContainer:
    """Create the providers and stores for ``settings``.

    Args:
        settings: Application settings.

    Returns:
        ServiceContainer: A fully wired container.
    """
    healthcare = DomainRouteProvider(
        "healthcare", "Patient, provider and appointment management"
    )
    training = DomainRouteProvider(
        "training", "Course discovery, enrollment and booking history"
    )
    arbiter = DomainRouteProvider("arbiter", "Case intake and dispute arbitration")
    crm = DomainRouteProvider("crm", "Contacts, companies and deal pipeline")
    financial = DomainRouteProvider("financial", "Invoices, payments and reporting")
    ai = DomainRouteProvider(
        "ai",
        "Recommendations and assistant chat across business data",
        dependencies=(healthcare, training, arbiter, financial),
    )
    dashboard = DomainRouteProvider(
        "dashboard",
        "Aggregated metrics across every business domain",
        dependencies=(healthcare, training, arbiter, financial, ai),
    )

    return ServiceContainer(
        healthcare=healthcare,
        training=training,
        arbiter=arbiter,
        crm=crm,
        financial=financial,
        ai=ai,
        dashboard=dashboard,
        rate_limiter=FixedWindowRateLimiter(
            window_seconds=settings.rate_limit_config.window_seconds,
            max_requests=settings.rate_limit_config.max_requests,
        ),
        session_store=InMemorySessionStore(
            max_age_seconds=settings.session_config.max_age_seconds,
        ),
    )
