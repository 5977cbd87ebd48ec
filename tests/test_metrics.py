"""Tests for run metrics collection."""

from member_hygiene.metrics import MetricsCollector


def test_counter_increment():
    m = MetricsCollector("fix")
    m.inc("roles_planned_total")
    m.inc("roles_planned_total", 2)
    assert m.get("roles_planned_total") == 3


def test_gauge_set():
    m = MetricsCollector("audit")
    m.set_gauge("anomalies_legacy_role", 4)
    assert m.get("anomalies_legacy_role") == 4


def test_prometheus_format_and_textfile(tmp_path):
    m = MetricsCollector("audit")
    m.inc("records_scanned_total", 5)
    m.set_gauge("anomalies_invalid_role", 2)
    text = m.to_prometheus()
    assert "hygiene_audit_records_scanned_total 5" in text
    assert "hygiene_audit_anomalies_invalid_role 2" in text
    assert "hygiene_audit_duration_seconds" in text

    path = tmp_path / "audit.prom"
    m.write_textfile(path)
    assert "hygiene_audit_records_scanned_total 5" in path.read_text()
    assert not (tmp_path / "audit.prom.tmp").exists()
