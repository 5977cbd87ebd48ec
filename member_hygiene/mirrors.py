"""
Mirror consistency checks.

For each record with both an organization and a linked account, the mirror at
``organizations/{org}/members/{uid}`` is fetched and compared with the record.
Lookups run one at a time, in record order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

import structlog

from .models import MemberRecord, MemberStore, MirrorRecord

log = structlog.get_logger()


class MirrorStatus(str, Enum):
    IN_SYNC = "in_sync"
    MISSING = "missing"
    ROLE_MISMATCH = "role_mismatch"
    ACTIVE_MISMATCH = "active_mismatch"
    LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class MirrorCheck:
    record: MemberRecord
    status: MirrorStatus
    mirror: Optional[MirrorRecord] = None
    error: Optional[str] = None

    @property
    def is_missing(self) -> bool:
        """Failed lookups are reported as missing, with the error attached."""
        return self.status in (MirrorStatus.MISSING, MirrorStatus.LOOKUP_FAILED)

    @property
    def role_mismatch(self) -> bool:
        return self.mirror is not None and self.mirror.role != self.record.role

    @property
    def active_mismatch(self) -> bool:
        return self.mirror is not None and self.mirror.active != self.record.active


def compare(record: MemberRecord, mirror: Optional[MirrorRecord]) -> MirrorCheck:
    if mirror is None:
        return MirrorCheck(record, MirrorStatus.MISSING)
    if mirror.role != record.role:
        return MirrorCheck(record, MirrorStatus.ROLE_MISMATCH, mirror)
    if mirror.active != record.active:
        return MirrorCheck(record, MirrorStatus.ACTIVE_MISMATCH, mirror)
    return MirrorCheck(record, MirrorStatus.IN_SYNC, mirror)


async def check_mirror(store: MemberStore, record: MemberRecord) -> MirrorCheck:
    """Fetch and compare one record's mirror. Lookup errors never propagate."""
    try:
        mirror = await store.get_mirror(record.organization_id, record.user_id)
    except Exception as exc:
        log.warning(
            "mirror.lookup_failed",
            record_id=record.id,
            org_id=record.organization_id,
            user_id=record.user_id,
            error=str(exc),
        )
        return MirrorCheck(record, MirrorStatus.LOOKUP_FAILED, error=str(exc))
    return compare(record, mirror)


async def check_mirrors(store: MemberStore, records: Iterable[MemberRecord]) -> list[MirrorCheck]:
    checks = []
    for record in records:
        if record.mirror_eligible:
            checks.append(await check_mirror(store, record))
    return checks
