"""Domain counters exposed for scraping."""

from classbook.monitoring.prometheus_metrics import PrometheusMetrics


def test_outcome_and_lock_counters_are_exported():
    PrometheusMetrics.record_booking_outcome("create_booking", "CAPACITY_EXCEEDED")
    PrometheusMetrics.record_resource_lock("class_session", "contended")

    exposition = PrometheusMetrics.get_metrics().decode()

    assert 'operation="create_booking",outcome="CAPACITY_EXCEEDED"' in exposition
    assert 'resource="class_session",result="contended"' in exposition
