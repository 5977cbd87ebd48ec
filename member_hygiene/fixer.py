"""
Write-applying fix job.

Reads the collection once, then sweeps each enabled category in a fixed order.
Record writes are also applied to the in-memory snapshot so later categories
plan against the state earlier ones produce. A dry run applies every planned
write; an apply run only applies writes whose batch committed. Mirrors are
not synced for records whose own write failed earlier in the run.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, TextIO

import structlog

from .classifier import classify_records
from .committer import BatchCommitter
from .config import DEFAULT_BATCH_LIMIT
from .duplicates import find_duplicate_sets
from .metrics import MetricsCollector
from .mirrors import MirrorStatus, check_mirror
from .models import MemberRecord, MemberStore
from .planner import (
    FIX_ORDER,
    FixCategory,
    Mutation,
    Target,
    plan_dedupe,
    plan_mirror,
    plan_role,
    plan_timestamps,
    plan_viewer_permissions,
)
from .report import CategoryResult, FixReport, category_summary, failure_line, mutation_line
from .results import OpResult

log = structlog.get_logger()

_RECORD_PLANNERS: dict[FixCategory, Callable[[MemberStore, MemberRecord], Optional[Mutation]]] = {
    FixCategory.ROLES: plan_role,
    FixCategory.TIMESTAMPS: plan_timestamps,
    FixCategory.VIEWER_PERMISSIONS: plan_viewer_permissions,
}


class HygieneFixer:
    """Runs the selected fix categories against one snapshot of the collection."""

    def __init__(
        self,
        store: MemberStore,
        *,
        apply: bool = False,
        batch_limit: int = DEFAULT_BATCH_LIMIT,
        out: TextIO = sys.stdout,
        metrics: Optional[MetricsCollector] = None,
    ):
        self._store = store
        self._apply = apply
        self._batch_limit = batch_limit
        self._out = out
        self._metrics = metrics
        self._snapshot: dict[str, MemberRecord] = {}
        # Staged writes awaiting a commit result, by record id.
        self._in_flight: dict[str, Mutation] = {}
        self._failed_records: set[str] = set()

    @property
    def records(self) -> list[MemberRecord]:
        return list(self._snapshot.values())

    async def run(self, categories: Iterable[FixCategory]) -> FixReport:
        selected = set(categories)
        log.info(
            "fix.started",
            mode="apply" if self._apply else "dry_run",
            categories=[c.value for c in FIX_ORDER if c in selected],
        )

        records = await self._store.fetch_members()
        self._snapshot = {r.id: r for r in records}
        self._log_classification(records)

        report = FixReport(apply=self._apply, total_records=len(records))
        for category in FIX_ORDER:
            if category in selected:
                result = await self._run_category(category)
                report.categories.append(result)
                self._print(category_summary(result, self._apply))
                self._record_metrics(result)

        log.info("fix.finished", errors=report.total_errors)
        return report

    # --- Categories ---

    async def _run_category(self, category: FixCategory) -> CategoryResult:
        self._print(f"\n[{category.value}]")
        result = CategoryResult(category)
        committer = BatchCommitter(self._store, apply=self._apply, limit=self._batch_limit)

        if category in _RECORD_PLANNERS:
            planner = _RECORD_PLANNERS[category]
            for record in self.records:
                mutation = planner(self._store, record)
                if mutation is not None:
                    await self._stage(committer, mutation, result)
        elif category is FixCategory.DEDUPE_EMAILS:
            for dup_set in find_duplicate_sets(self.records):
                for mutation in plan_dedupe(self._store, dup_set):
                    await self._stage(committer, mutation, result)
        elif category is FixCategory.MIRRORS:
            await self._sync_mirrors(committer, result)

        self._settle(await committer.flush())
        result.applied = committer.committed
        result.errors += committer.failed
        return result

    async def _sync_mirrors(self, committer: BatchCommitter, result: CategoryResult) -> None:
        for record in self.records:
            if not record.mirror_eligible:
                continue
            if record.id in self._failed_records:
                result.errors += 1
                self._print(f"❌ Skipped mirror for {record.label} ({record.id}): record write failed")
                continue
            check = await check_mirror(self._store, record)
            if check.status is MirrorStatus.LOOKUP_FAILED:
                result.errors += 1
                self._print(f"❌ Mirror lookup failed for {record.id}: {check.error}")
                continue
            mutation = plan_mirror(self._store, check)
            if mutation is not None:
                await self._stage(committer, mutation, result)

    # --- Staging ---

    async def _stage(self, committer: BatchCommitter, mutation: Mutation, result: CategoryResult) -> None:
        result.planned += 1
        self._count_breakdown(mutation, result)
        self._in_flight[mutation.record_id] = mutation
        self._settle(await committer.add(mutation))

    def _settle(self, ops: list[OpResult]) -> None:
        """Report each finished write and fold the successful ones into the snapshot."""
        for op in ops:
            mutation = self._in_flight.pop(op.record_id)
            if not op.ok:
                self._print(failure_line(mutation, op.detail))
                if mutation.target is Target.RECORD:
                    self._failed_records.add(mutation.record_id)
                continue

            self._print(mutation_line(mutation, self._apply))
            if mutation.target is Target.RECORD:
                record = self._snapshot[mutation.record_id]
                self._snapshot[record.id] = record.with_store_fields(
                    mutation.fields, datetime.now(timezone.utc)
                )

    @staticmethod
    def _count_breakdown(mutation: Mutation, result: CategoryResult) -> None:
        if mutation.category is FixCategory.TIMESTAMPS:
            for name in mutation.fields:
                result.breakdown[name] += 1
        elif mutation.category is FixCategory.MIRRORS:
            result.breakdown[mutation.action] += 1

    # --- Output ---

    def _print(self, line: str) -> None:
        print(line, file=self._out)

    def _log_classification(self, records: list[MemberRecord]) -> None:
        counts = {c.value: len(items) for c, items in classify_records(records).items() if items}
        log.info("fix.classified", records=len(records), **counts)

    def _record_metrics(self, result: CategoryResult) -> None:
        if self._metrics is None:
            return
        name = result.category.name.lower()
        self._metrics.inc(f"{name}_planned_total", result.planned)
        self._metrics.inc(f"{name}_applied_total", result.applied)
        self._metrics.inc(f"{name}_errors_total", result.errors)


async def run_fix(
    store: MemberStore,
    categories: Iterable[FixCategory],
    *,
    apply: bool = False,
    batch_limit: int = DEFAULT_BATCH_LIMIT,
    out: TextIO = sys.stdout,
    metrics: Optional[MetricsCollector] = None,
) -> FixReport:
    fixer = HygieneFixer(store, apply=apply, batch_limit=batch_limit, out=out, metrics=metrics)
    if metrics is not None:
        metrics.set_gauge("apply_mode", 1 if apply else 0)
    report = await fixer.run(categories)
    if metrics is not None:
        metrics.inc("records_scanned_total", report.total_records)
    return report
