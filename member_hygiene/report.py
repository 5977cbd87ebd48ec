"""
Human-readable and JSON reports shared by the audit and fix jobs.

Every category always prints its total; example lines are capped per category.
"""

from __future__ import annotations

import sys
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, TextIO

from .classifier import AnomalyCategory
from .planner import FixCategory, Mutation

# Present-tense verb for dry runs, past tense once applied.
_VERBS: dict[str, tuple[str, str]] = {
    "fix": ("Would fix", "Fixed"),
    "backfill": ("Would backfill", "Backfilled"),
    "clear": ("Would clear", "Cleared"),
    "deactivate": ("Would deactivate", "Deactivated"),
    "create": ("Would create", "Created"),
    "update": ("Would update", "Updated"),
}


def _org(item: Any) -> str:
    return f"org={item.record.organization_id}"


def _mirror_where(check: Any) -> str:
    r = check.record
    return f"{r.id} org={r.organization_id} uid={r.user_id} role={r.role}"


AUDIT_SECTIONS: list[tuple[AnomalyCategory, str, Callable[[Any], str]]] = [
    (AnomalyCategory.LEGACY_ROLE, "Legacy role = member",
     lambda a: f"{a.record.id} {_org(a)} {a.record.email}".rstrip()),
    (AnomalyCategory.INVALID_ROLE, "Invalid role values",
     lambda a: f"{a.record.id} role={a.record.role!r} {_org(a)}"),
    (AnomalyCategory.MISSING_ORGANIZATION, "Missing organizationId",
     lambda a: f"{a.record.id} {a.record.email}".rstrip()),
    (AnomalyCategory.MISSING_CREATED_AT, "Missing createdAt",
     lambda a: f"{a.record.id} {_org(a)}"),
    (AnomalyCategory.MISSING_UPDATED_AT, "Missing updatedAt",
     lambda a: f"{a.record.id} {_org(a)}"),
    (AnomalyCategory.DUPLICATE_EMAIL, "Duplicate emails within org",
     lambda d: f"{d.key} -> [{', '.join(d.record_ids)}] primary={d.primary.id}"),
    (AnomalyCategory.VIEWER_PERMISSIONS_ON_NON_VIEWER, "viewerPermissions present on non-viewer",
     lambda a: f"{a.record.id} role={a.record.role} {_org(a)} count={len(a.record.viewer_permissions)}"),
    (AnomalyCategory.FREELANCE_WITH_PERMISSIONS, "freelance with viewerPermissions",
     lambda a: f"{a.record.id} {_org(a)} count={len(a.record.viewer_permissions)}"),
    (AnomalyCategory.MIRROR_MISSING, "Membership mirror missing",
     lambda c: _mirror_where(c) + (f" err={c.error}" if c.error else "")),
    (AnomalyCategory.MIRROR_ROLE_MISMATCH, "Membership mirror role mismatch",
     lambda c: f"{_mirror_where(c)} mirrorRole={c.mirror.role}"),
    (AnomalyCategory.MIRROR_ACTIVE_MISMATCH, "Membership mirror active mismatch",
     lambda c: f"{_mirror_where(c)} active={c.record.active} mirrorActive={c.mirror.active}"),
]

FIX_TITLES: dict[FixCategory, str] = {
    FixCategory.ROLES: "Roles",
    FixCategory.TIMESTAMPS: "Timestamps",
    FixCategory.VIEWER_PERMISSIONS: "ViewerPermissions",
    FixCategory.DEDUPE_EMAILS: "De-duplication",
    FixCategory.MIRRORS: "Mirrors",
}


# ---------------------------------------------------------------------------
# Report data
# ---------------------------------------------------------------------------

@dataclass
class AuditReport:
    total_records: int
    findings: dict[AnomalyCategory, list] = field(default_factory=dict)
    mirror_errors: int = 0

    def count(self, category: AnomalyCategory) -> int:
        return len(self.findings.get(category, []))

    @property
    def total_anomalies(self) -> int:
        return sum(len(items) for items in self.findings.values())


@dataclass
class CategoryResult:
    category: FixCategory
    planned: int = 0
    applied: int = 0
    errors: int = 0
    breakdown: Counter = field(default_factory=Counter)


@dataclass
class FixReport:
    apply: bool
    total_records: int = 0
    categories: list[CategoryResult] = field(default_factory=list)

    @property
    def total_errors(self) -> int:
        return sum(c.errors for c in self.categories)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def print_section(
    title: str,
    items: list,
    formatter: Callable[[Any], str],
    limit: int,
    out: TextIO = sys.stdout,
) -> None:
    print(f"\n— {title}: {len(items)}", file=out)
    sample = items[:limit]
    for item in sample:
        print(f"  • {formatter(item)}", file=out)
    if len(items) > len(sample):
        print(f"  … and {len(items) - len(sample)} more", file=out)


def render_audit(report: AuditReport, limit: int, out: TextIO = sys.stdout) -> None:
    print(f"Membership records: {report.total_records}", file=out)
    for category, title, formatter in AUDIT_SECTIONS:
        print_section(title, report.findings.get(category, []), formatter, limit, out)
    if report.mirror_errors:
        print(f"\nMirror lookups failed: {report.mirror_errors}", file=out)
    print("\n✅ Audit complete (no writes performed).", file=out)


def audit_to_dict(report: AuditReport, limit: int) -> dict[str, Any]:
    sections = {}
    for category, title, formatter in AUDIT_SECTIONS:
        items = report.findings.get(category, [])
        sections[category.value] = {
            "title": title,
            "count": len(items),
            "examples": [formatter(i) for i in items[:limit]],
        }
    return {
        "total_records": report.total_records,
        "mirror_errors": report.mirror_errors,
        "categories": sections,
    }


def mutation_line(mutation: Mutation, apply: bool) -> str:
    dry, done = _VERBS[mutation.action]
    return f"→ {done if apply else dry} {mutation.summary}"


def failure_line(mutation: Mutation, detail: str) -> str:
    return f"❌ Could not {mutation.action} {mutation.summary}: {detail}"


def category_summary(result: CategoryResult, apply: bool) -> str:
    title = FIX_TITLES[result.category]
    if apply:
        line = f"{title}: Applied {result.applied} of {result.planned}"
    else:
        line = f"{title}: Would apply {result.planned}"
    if result.breakdown:
        line += " (" + ", ".join(f"{k}={v}" for k, v in sorted(result.breakdown.items())) + ")"
    return line + f", errors: {result.errors}"


def render_fix_summary(report: FixReport, out: TextIO = sys.stdout) -> None:
    print("\n" + "=" * 60, file=out)
    print(f"Fix summary — {'APPLY MODE' if report.apply else 'DRY RUN'}", file=out)
    print("=" * 60, file=out)
    for result in report.categories:
        print(category_summary(result, report.apply), file=out)
    print("=" * 60, file=out)
    if not report.apply:
        print("\nThis was a DRY RUN. No changes were made. Re-run with --apply to write.", file=out)
    else:
        print("\n✅ Done.", file=out)


def fix_to_dict(report: FixReport) -> dict[str, Any]:
    return {
        "apply": report.apply,
        "total_records": report.total_records,
        "categories": {
            r.category.value: {
                "planned": r.planned,
                "applied": r.applied,
                "errors": r.errors,
                "breakdown": dict(r.breakdown),
            }
            for r in report.categories
        },
    }
