"""
Record-level anomaly classification.

Pure functions: a record goes in, the list of anomaly categories it falls into
comes out. A record may match several categories at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .models import ALLOWED_ROLES, LEGACY_MEMBER_ROLE, MemberRecord, Role


class AnomalyCategory(str, Enum):
    LEGACY_ROLE = "legacy_role"
    INVALID_ROLE = "invalid_role"
    MISSING_ORGANIZATION = "missing_organization"
    MISSING_CREATED_AT = "missing_created_at"
    MISSING_UPDATED_AT = "missing_updated_at"
    DUPLICATE_EMAIL = "duplicate_email"
    VIEWER_PERMISSIONS_ON_NON_VIEWER = "viewer_permissions_on_non_viewer"
    FREELANCE_WITH_PERMISSIONS = "freelance_with_permissions"
    MIRROR_MISSING = "mirror_missing"
    MIRROR_ROLE_MISMATCH = "mirror_role_mismatch"
    MIRROR_ACTIVE_MISMATCH = "mirror_active_mismatch"


RECORD_CATEGORIES: tuple[AnomalyCategory, ...] = (
    AnomalyCategory.LEGACY_ROLE,
    AnomalyCategory.INVALID_ROLE,
    AnomalyCategory.MISSING_ORGANIZATION,
    AnomalyCategory.MISSING_CREATED_AT,
    AnomalyCategory.MISSING_UPDATED_AT,
    AnomalyCategory.VIEWER_PERMISSIONS_ON_NON_VIEWER,
    AnomalyCategory.FREELANCE_WITH_PERMISSIONS,
)


@dataclass(frozen=True)
class Anomaly:
    category: AnomalyCategory
    record: MemberRecord


def is_legacy_role(record: MemberRecord) -> bool:
    return record.role == LEGACY_MEMBER_ROLE


def is_invalid_role(record: MemberRecord) -> bool:
    return record.role not in ALLOWED_ROLES and not is_legacy_role(record)


def has_stray_viewer_permissions(record: MemberRecord) -> bool:
    """Non-viewers must not carry viewer permissions."""
    return record.role != Role.VIEWER.value and bool(record.viewer_permissions)


def is_freelance_with_permissions(record: MemberRecord) -> bool:
    return record.role == Role.FREELANCE.value and bool(record.viewer_permissions)


_CHECKS = (
    (AnomalyCategory.LEGACY_ROLE, is_legacy_role),
    (AnomalyCategory.INVALID_ROLE, is_invalid_role),
    (AnomalyCategory.MISSING_ORGANIZATION, lambda r: not r.organization_id),
    (AnomalyCategory.MISSING_CREATED_AT, lambda r: r.created_at is None),
    (AnomalyCategory.MISSING_UPDATED_AT, lambda r: r.updated_at is None),
    (AnomalyCategory.VIEWER_PERMISSIONS_ON_NON_VIEWER, has_stray_viewer_permissions),
    (AnomalyCategory.FREELANCE_WITH_PERMISSIONS, is_freelance_with_permissions),
)


def classify_record(record: MemberRecord) -> list[AnomalyCategory]:
    return [category for category, check in _CHECKS if check(record)]


def classify_records(records: Iterable[MemberRecord]) -> dict[AnomalyCategory, list[Anomaly]]:
    """Bucket every record-level anomaly by category, in input order."""
    buckets: dict[AnomalyCategory, list[Anomaly]] = {c: [] for c in RECORD_CATEGORIES}
    for record in records:
        for category in classify_record(record):
            buckets[category].append(Anomaly(category, record))
    return buckets
