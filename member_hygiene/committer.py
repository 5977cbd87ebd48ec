"""
Bounded, sequential batch commits.

Planned writes are staged into a store batch and committed whenever the batch
reaches its ceiling, then once more for the remainder at the end of a fix
category. In dry-run mode nothing is staged and the store is never touched.

``add`` and ``flush`` return the results of every write that settled during
the call, so the caller only acts on writes that actually landed.
"""

from __future__ import annotations

from typing import Optional

import structlog

from .config import DEFAULT_BATCH_LIMIT, STORE_BATCH_HARD_LIMIT
from .models import MemberStore, WriteBatch
from .planner import Mutation, WriteKind
from .results import OpResult

log = structlog.get_logger()


class BatchCommitter:
    """Accumulates writes and commits them in batches of at most ``limit``."""

    def __init__(self, store: MemberStore, *, apply: bool, limit: int = DEFAULT_BATCH_LIMIT):
        if not 0 < limit <= STORE_BATCH_HARD_LIMIT:
            raise ValueError(f"batch limit must be between 1 and {STORE_BATCH_HARD_LIMIT}")
        self._store = store
        self._apply = apply
        self._limit = limit
        self._batch: Optional[WriteBatch] = None
        self._pending: list[Mutation] = []
        self.committed = 0
        self.failed = 0
        self.batches = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def add(self, mutation: Mutation) -> list[OpResult]:
        """Stage one write, committing the batch once it reaches the ceiling."""
        if not self._apply:
            return [OpResult.success(mutation.record_id, "dry-run")]

        if self._batch is None:
            self._batch = self._store.batch()
        try:
            if mutation.kind is WriteKind.SET:
                self._batch.set(mutation.path, mutation.fields)
            else:
                self._batch.update(mutation.path, mutation.fields)
        except Exception as exc:
            self.failed += 1
            log.warning(
                "fix.stage_failed",
                record_id=mutation.record_id,
                path=mutation.path,
                error=str(exc),
            )
            return [OpResult.recoverable(mutation.record_id, str(exc))]

        self._pending.append(mutation)
        if len(self._pending) >= self._limit:
            return await self.flush()
        return []

    async def flush(self) -> list[OpResult]:
        """Commit whatever is staged. A failed commit counts every write in it as failed."""
        if not self._pending:
            return []

        pending, batch = self._pending, self._batch
        self._pending, self._batch = [], None
        try:
            await batch.commit()
        except Exception as exc:
            self.failed += len(pending)
            log.error("fix.batch_failed", writes=len(pending), error=str(exc))
            return [OpResult.recoverable(m.record_id, str(exc)) for m in pending]

        self.committed += len(pending)
        self.batches += 1
        log.info("fix.batch_committed", writes=len(pending), batches=self.batches)
        return [OpResult.success(m.record_id) for m in pending]
