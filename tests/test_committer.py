"""Tests for bounded batch commits."""

from dataclasses import replace

import pytest

from member_hygiene.committer import BatchCommitter
from member_hygiene.planner import FixCategory, Mutation, Target, WriteKind


def _update(doc_id: str) -> Mutation:
    return Mutation(
        category=FixCategory.ROLES,
        kind=WriteKind.UPDATE,
        target=Target.RECORD,
        path=f"teamMembers/{doc_id}",
        record_id=doc_id,
        action="fix",
        summary=doc_id,
        fields={"role": "technician"},
    )


def _seed(store, n):
    for i in range(n):
        store.add_member(f"m{i}", role="member")


async def test_dry_run_never_touches_store(store):
    _seed(store, 3)
    committer = BatchCommitter(store, apply=False, limit=2)
    for i in range(3):
        results = await committer.add(_update(f"m{i}"))
        assert [r.ok for r in results] == [True]
    await committer.flush()
    assert store.batches_opened == 0
    assert store.writes == 0
    assert committer.committed == 0


async def test_commits_at_ceiling_and_remainder(store):
    _seed(store, 5)
    committer = BatchCommitter(store, apply=True, limit=2)
    for i in range(5):
        await committer.add(_update(f"m{i}"))
    assert store.batch_sizes == [2, 2]
    assert committer.pending == 1
    await committer.flush()
    assert store.batch_sizes == [2, 2, 1]
    assert committer.committed == 5
    assert committer.batches == 3
    assert store.member("m4")["role"] == "technician"


async def test_failed_commit_counts_every_write_and_continues(store):
    _seed(store, 3)
    store.fail_commits = 1
    committer = BatchCommitter(store, apply=True, limit=2)
    settled = []
    for i in range(3):
        settled += await committer.add(_update(f"m{i}"))
    assert [(r.record_id, r.ok) for r in settled] == [("m0", False), ("m1", False)]
    results = await committer.flush()
    assert committer.failed == 2
    assert committer.committed == 1
    assert [r.ok for r in results] == [True]
    assert store.member("m0")["role"] == "member"
    assert store.member("m2")["role"] == "technician"


async def test_stage_failure_is_recoverable(store):
    committer = BatchCommitter(store, apply=True)
    bad = replace(_update("m0"), path="teamMembers//m0")
    [result] = await committer.add(bad)
    assert not result.ok
    assert committer.failed == 1
    assert committer.pending == 0


def test_limit_must_respect_store_ceiling(store):
    with pytest.raises(ValueError):
        BatchCommitter(store, apply=True, limit=501)
    with pytest.raises(ValueError):
        BatchCommitter(store, apply=True, limit=0)
