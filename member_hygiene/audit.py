"""
Read-only audit job.

One bulk read of the membership collection, record-level classification,
duplicate detection, then one mirror lookup per eligible record.
"""

from __future__ import annotations

from typing import Optional

import structlog

from .classifier import AnomalyCategory, classify_records
from .duplicates import find_duplicate_sets
from .metrics import MetricsCollector
from .mirrors import MirrorStatus, check_mirrors
from .models import MemberStore
from .report import AuditReport

log = structlog.get_logger()


async def run_audit(store: MemberStore, metrics: Optional[MetricsCollector] = None) -> AuditReport:
    log.info("audit.started")
    records = await store.fetch_members()

    findings: dict[AnomalyCategory, list] = dict(classify_records(records))
    findings[AnomalyCategory.DUPLICATE_EMAIL] = find_duplicate_sets(records)

    checks = await check_mirrors(store, records)
    findings[AnomalyCategory.MIRROR_MISSING] = [c for c in checks if c.is_missing]
    findings[AnomalyCategory.MIRROR_ROLE_MISMATCH] = [c for c in checks if c.role_mismatch]
    findings[AnomalyCategory.MIRROR_ACTIVE_MISMATCH] = [c for c in checks if c.active_mismatch]
    mirror_errors = sum(1 for c in checks if c.status is MirrorStatus.LOOKUP_FAILED)

    report = AuditReport(total_records=len(records), findings=findings, mirror_errors=mirror_errors)

    if metrics is not None:
        metrics.inc("records_scanned_total", len(records))
        metrics.inc("mirror_lookups_total", len(checks))
        metrics.inc("mirror_lookup_errors_total", mirror_errors)
        for category in AnomalyCategory:
            metrics.set_gauge(f"anomalies_{category.value}", report.count(category))

    log.info(
        "audit.finished",
        records=len(records),
        anomalies=report.total_anomalies,
        mirror_lookups=len(checks),
        mirror_errors=mirror_errors,
    )
    return report
