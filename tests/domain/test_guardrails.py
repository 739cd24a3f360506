"""Tests for the mirror write monitor."""

from wardtrack.domain.guardrails import MirrorMonitor, MirrorMonitorConfig
from wardtrack.domain.ports import DependencyError, Result

OK = Result.success_result("ref")
FAILED = Result.failure_result(DependencyError("mirror unreachable"))


def test_not_degraded_before_minimum_writes():
    monitor = MirrorMonitor(MirrorMonitorConfig(min_writes_before_check=5))
    for _ in range(4):
        monitor.record_result(FAILED, operation="create_patient", mrn="MRN001")

    assert not monitor.is_degraded()
    assert monitor.get_statistics()["total_failures"] == 4


def test_degrades_over_threshold_and_recovers():
    monitor = MirrorMonitor(MirrorMonitorConfig(failure_threshold_percent=50.0, window_size=4, min_writes_before_check=4))
    for _ in range(4):
        monitor.record_result(FAILED, operation="add_note")
    assert monitor.is_degraded()

    for _ in range(3):
        monitor.record_result(OK, operation="add_note")
    assert not monitor.is_degraded()


def test_statistics_record_last_error():
    monitor = MirrorMonitor()
    monitor.record_result(OK, operation="create_patient", mrn="MRN001")
    monitor.record_result(FAILED, operation="discharge_patient", mrn="MRN002")

    stats = monitor.get_statistics()

    assert stats["total_writes"] == 2
    assert stats["failure_rate"] == 50.0
    assert "discharge_patient (MRN002)" in stats["last_error"]
    assert stats["last_failure_at"] is not None

