"""
Duplicate detection by (organization, normalized email).

The primary of a duplicate set is the earliest-created record, ties broken by
document id. Records without ``createdAt`` sort last. The audit and the fixer
use the same ordering so repeated fixer runs pick the same primary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, NamedTuple

from .models import UNREADABLE_TIMESTAMP, MemberRecord


class DuplicateKey(NamedTuple):
    organization_id: str
    email: str

    def __str__(self) -> str:
        return f"{self.organization_id}|{self.email}"


@dataclass(frozen=True)
class DuplicateSet:
    key: DuplicateKey
    primary: MemberRecord
    duplicates: tuple[MemberRecord, ...]

    @property
    def record_ids(self) -> list[str]:
        return [self.primary.id, *(d.id for d in self.duplicates)]


def duplicate_key(record: MemberRecord) -> DuplicateKey | None:
    email = record.normalized_email
    if not record.organization_id or not email:
        return None
    return DuplicateKey(record.organization_id, email)


def resolution_order(record: MemberRecord) -> tuple[int, datetime, str]:
    if record.created_at is None:
        return (1, UNREADABLE_TIMESTAMP, record.id)
    return (0, record.created_at, record.id)


def group_by_org_email(records: Iterable[MemberRecord]) -> dict[DuplicateKey, list[MemberRecord]]:
    groups: dict[DuplicateKey, list[MemberRecord]] = {}
    for record in records:
        key = duplicate_key(record)
        if key is not None:
            groups.setdefault(key, []).append(record)
    return groups


def resolve(key: DuplicateKey, group: Iterable[MemberRecord]) -> DuplicateSet:
    ordered = sorted(group, key=resolution_order)
    return DuplicateSet(key=key, primary=ordered[0], duplicates=tuple(ordered[1:]))


def find_duplicate_sets(records: Iterable[MemberRecord]) -> list[DuplicateSet]:
    """Every (organization, email) group with more than one record, resolved."""
    return [
        resolve(key, group)
        for key, group in group_by_org_email(records).items()
        if len(group) > 1
    ]
