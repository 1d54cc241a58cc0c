"""
Tests for Keygate Prometheus metrics.
"""

from prometheus_client import CollectorRegistry

from keygate.metrics import KeygateMetrics


class TestKeygateMetrics:
    """Test suite for KeygateMetrics."""

    def test_isolated_registries(self):
        """Test that two collectors can coexist on separate registries."""
        first = KeygateMetrics(registry=CollectorRegistry())
        second = KeygateMetrics(registry=CollectorRegistry())

        first.track_login("success")

        assert first.registry.get_sample_value("keygate_logins_total", {"outcome": "success"}) == 1.0
        assert second.registry.get_sample_value("keygate_logins_total", {"outcome": "success"}) is None

    def test_track_token_grant(self):
        metrics = KeygateMetrics(registry=CollectorRegistry())

        metrics.track_token_grant("password", "success", 0.02)
        metrics.track_token_grant("password", "InvalidUsernameOrPasswordError", 0.01)

        registry = metrics.registry
        assert registry.get_sample_value(
            "keygate_token_grants_total", {"grant_type": "password", "outcome": "success"}
        ) == 1.0
        assert registry.get_sample_value(
            "keygate_token_request_duration_seconds_count", {"grant_type": "password"}
        ) == 2.0

    def test_track_introspection_and_errors(self):
        metrics = KeygateMetrics(registry=CollectorRegistry())

        metrics.track_introspection("access_token", False)
        metrics.track_error("InvalidScopeError")
        metrics.track_authorization("code", "access_denied")

        registry = metrics.registry
        assert registry.get_sample_value(
            "keygate_introspections_total", {"token_type_hint": "access_token", "active": "false"}
        ) == 1.0
        assert registry.get_sample_value(
            "keygate_errors_total", {"error_type": "InvalidScopeError"}
        ) == 1.0
        assert registry.get_sample_value(
            "keygate_authorizations_total", {"response_type": "code", "outcome": "access_denied"}
        ) == 1.0

    def test_generate_metrics(self):
        metrics = KeygateMetrics(registry=CollectorRegistry())
        metrics.track_login("success")

        output = metrics.generate_metrics()

        assert b"keygate_logins_total" in output
        assert metrics.get_content_type().startswith("text/plain")
