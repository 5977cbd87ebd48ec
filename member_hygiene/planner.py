"""
Repair planning.

Each ``plan_*`` function looks at the current state of one record (or one
duplicate set, or one mirror check) and returns the smallest write that fixes
it, or nothing when the record is already correct. Returning nothing for
correct data is what makes repeated fixer runs safe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .duplicates import DuplicateSet
from .mirrors import MirrorCheck, MirrorStatus
from .models import LEGACY_ROLE_MAP, SERVER_TIMESTAMP, MemberRecord, MemberStore, Role


class FixCategory(str, Enum):
    ROLES = "roles"
    TIMESTAMPS = "timestamps"
    VIEWER_PERMISSIONS = "viewer-permissions"
    DEDUPE_EMAILS = "dedupe-emails"
    MIRRORS = "mirrors"


# Dedupe runs before mirrors so deactivations reach the mirror in the same run.
FIX_ORDER: tuple[FixCategory, ...] = (
    FixCategory.ROLES,
    FixCategory.TIMESTAMPS,
    FixCategory.VIEWER_PERMISSIONS,
    FixCategory.DEDUPE_EMAILS,
    FixCategory.MIRRORS,
)


class WriteKind(str, Enum):
    SET = "set"
    UPDATE = "update"


class Target(str, Enum):
    RECORD = "record"
    MIRROR = "mirror"


@dataclass(frozen=True)
class Mutation:
    """A single planned document write."""

    category: FixCategory
    kind: WriteKind
    target: Target
    path: str
    record_id: str
    action: str
    summary: str
    fields: dict[str, Any] = field(default_factory=dict)


def _record_update(
    store: MemberStore,
    category: FixCategory,
    record: MemberRecord,
    action: str,
    summary: str,
    fields: dict[str, Any],
) -> Mutation:
    return Mutation(
        category=category,
        kind=WriteKind.UPDATE,
        target=Target.RECORD,
        path=store.member_path(record.id),
        record_id=record.id,
        action=action,
        summary=summary,
        fields=fields,
    )


def plan_role(store: MemberStore, record: MemberRecord) -> Optional[Mutation]:
    target = LEGACY_ROLE_MAP.get(record.role)
    if target is None:
        return None
    return _record_update(
        store,
        FixCategory.ROLES,
        record,
        "fix",
        f"role for {record.label} ({record.id}): {record.role} → {target.value}",
        {"role": target.value, "updatedAt": SERVER_TIMESTAMP},
    )


def plan_timestamps(store: MemberStore, record: MemberRecord) -> Optional[Mutation]:
    """Backfill only the missing timestamps; existing values are never touched."""
    fields: dict[str, Any] = {}
    if record.created_at is None:
        fields["createdAt"] = SERVER_TIMESTAMP
    if record.updated_at is None:
        fields["updatedAt"] = SERVER_TIMESTAMP
    if not fields:
        return None
    return _record_update(
        store,
        FixCategory.TIMESTAMPS,
        record,
        "backfill",
        f"timestamps for {record.id} ({', '.join(fields)})",
        fields,
    )


def plan_viewer_permissions(store: MemberStore, record: MemberRecord) -> Optional[Mutation]:
    if record.role == Role.VIEWER.value or not record.viewer_permissions:
        return None
    return _record_update(
        store,
        FixCategory.VIEWER_PERMISSIONS,
        record,
        "clear",
        f"viewerPermissions for {record.id} (role={record.role}, had={len(record.viewer_permissions)})",
        {"viewerPermissions": [], "updatedAt": SERVER_TIMESTAMP},
    )


def plan_dedupe(store: MemberStore, dup_set: DuplicateSet) -> list[Mutation]:
    """Deactivate every still-active non-primary member of a duplicate set."""
    primary = dup_set.primary
    return [
        _record_update(
            store,
            FixCategory.DEDUPE_EMAILS,
            dup,
            "deactivate",
            f"duplicate {dup.label} ({dup.id}) primary={primary.id} key={dup_set.key}",
            {"active": False, "duplicateOf": primary.id, "updatedAt": SERVER_TIMESTAMP},
        )
        for dup in dup_set.duplicates
        if dup.active
    ]


def plan_mirror(store: MemberStore, check: MirrorCheck) -> Optional[Mutation]:
    """Create a missing mirror, or update only the drifted fields of an existing one.

    Failed lookups are not planned; the caller counts them as errors.
    """
    record = check.record
    path = store.mirror_path(record.organization_id, record.user_id)
    where = f"{record.id} → org={record.organization_id}/uid={record.user_id}"

    if check.status is MirrorStatus.LOOKUP_FAILED:
        return None

    if check.status is MirrorStatus.MISSING:
        return Mutation(
            category=FixCategory.MIRRORS,
            kind=WriteKind.SET,
            target=Target.MIRROR,
            path=path,
            record_id=record.id,
            action="create",
            summary=f"mirror for {where}",
            fields={
                "role": record.role,
                "active": record.active,
                "createdAt": SERVER_TIMESTAMP,
                "updatedAt": SERVER_TIMESTAMP,
            },
        )

    fields: dict[str, Any] = {}
    if check.role_mismatch:
        fields["role"] = record.role
    if check.active_mismatch:
        fields["active"] = record.active
    if not fields:
        return None

    changed = "/".join(fields)
    fields["updatedAt"] = SERVER_TIMESTAMP
    return Mutation(
        category=FixCategory.MIRRORS,
        kind=WriteKind.UPDATE,
        target=Target.MIRROR,
        path=path,
        record_id=record.id,
        action="update",
        summary=f"mirror for {where} ({changed})",
        fields=fields,
    )
