"""
Keygate Metrics Collection

Prometheus metrics for token issuance, introspection, interactive logins
and request latency.

Author: Keygate Team
Date: 2026-10-06
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    REGISTRY,
    generate_latest,
    CONTENT_TYPE_LATEST,
)


class KeygateMetrics:
    """
    Prometheus metrics collector for the authorization server.

    Each application instance should own a registry so several apps can
    coexist in one process (tests build many).
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collectors.

        Args:
            registry: Prometheus registry (uses default if None)
        """
        self.registry = registry

        self.token_grants_total = Counter(
            'keygate_token_grants_total',
            'Token endpoint requests by grant type and outcome',
            ['grant_type', 'outcome'],
            registry=registry
        )

        self.introspections_total = Counter(
            'keygate_introspections_total',
            'Introspection requests by token type hint and result',
            ['token_type_hint', 'active'],
            registry=registry
        )

        self.logins_total = Counter(
            'keygate_logins_total',
            'Interactive login attempts by outcome',
            ['outcome'],
            registry=registry
        )

        self.authorizations_total = Counter(
            'keygate_authorizations_total',
            'Consent decisions by response type and outcome',
            ['response_type', 'outcome'],
            registry=registry
        )

        self.errors_total = Counter(
            'keygate_errors_total',
            'Errors returned to callers',
            ['error_type'],
            registry=registry
        )

        self.token_request_duration_seconds = Histogram(
            'keygate_token_request_duration_seconds',
            'Token endpoint latency',
            ['grant_type'],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
            registry=registry
        )

    def track_token_grant(self, grant_type: str, outcome: str, duration: float) -> None:
        """
        Track a token endpoint request.

        Args:
            grant_type: Requested grant type (or "unknown")
            outcome: "success" or the error class name
            duration: Handling time in seconds
        """
        self.token_grants_total.labels(grant_type=grant_type, outcome=outcome).inc()
        self.token_request_duration_seconds.labels(grant_type=grant_type).observe(duration)

    def track_introspection(self, token_type_hint: str, active: bool) -> None:
        self.introspections_total.labels(
            token_type_hint=token_type_hint, active=str(active).lower()
        ).inc()

    def track_login(self, outcome: str) -> None:
        self.logins_total.labels(outcome=outcome).inc()

    def track_authorization(self, response_type: str, outcome: str) -> None:
        self.authorizations_total.labels(response_type=response_type, outcome=outcome).inc()

    def track_error(self, error_type: str) -> None:
        self.errors_total.labels(error_type=error_type).inc()

    def generate_metrics(self) -> bytes:
        """
        Generate Prometheus metrics output.

        Returns:
            Metrics in Prometheus text format
        """
        registry = self.registry if self.registry is not None else REGISTRY
        return generate_latest(registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST
