"""
In-memory stand-in for the Firestore member store.

Same interface as ``FirestoreMemberStore``: documents are held in a dict keyed
by path, batches apply their writes on commit. Failures can be injected for
mirror lookups, the bulk read and batch commits.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from member_hygiene.models import SERVER_TIMESTAMP, MemberRecord, MirrorRecord
from member_hygiene.results import StoreReadError

MEMBERS = "teamMembers"


class FakeBatch:
    def __init__(self, store: "FakeStore"):
        self._store = store
        self._ops: list[tuple[str, str, dict[str, Any]]] = []

    def set(self, path: str, fields: dict[str, Any]) -> None:
        self._store.check_path(path)
        self._ops.append(("set", path, dict(fields)))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        self._store.check_path(path)
        self._ops.append(("update", path, dict(fields)))

    async def commit(self) -> None:
        self._store.commit_calls += 1
        if self._store.fail_commits > 0:
            self._store.fail_commits -= 1
            raise RuntimeError("deadline exceeded")
        for kind, path, _ in self._ops:
            if kind == "update" and path not in self._store.docs:
                raise RuntimeError(f"no document to update: {path}")
        for kind, path, fields in self._ops:
            resolved = {k: self._store.now if v is SERVER_TIMESTAMP else v for k, v in fields.items()}
            if kind == "set":
                self._store.docs[path] = resolved
            else:
                self._store.docs[path].update(resolved)
            self._store.writes += 1
        self._store.batch_sizes.append(len(self._ops))


class FakeStore:
    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.writes = 0
        self.commit_calls = 0
        self.batches_opened = 0
        self.batch_sizes: list[int] = []
        self.mirror_lookups = 0
        self.fail_read = False
        self.fail_commits = 0
        self.fail_mirror_users: set[str] = set()
        self.closed = False

    # --- Seeding helpers ---

    def add_member(self, doc_id: str, **fields: Any) -> None:
        self.docs[self.member_path(doc_id)] = dict(fields)

    def add_mirror(self, org_id: str, user_id: str, **fields: Any) -> None:
        self.docs[self.mirror_path(org_id, user_id)] = dict(fields)

    def member(self, doc_id: str) -> dict[str, Any]:
        return self.docs[self.member_path(doc_id)]

    def mirror(self, org_id: str, user_id: str) -> Optional[dict[str, Any]]:
        return self.docs.get(self.mirror_path(org_id, user_id))

    def check_path(self, path: str) -> None:
        parts = path.split("/")
        if len(parts) % 2 or not all(parts):
            raise ValueError(f"invalid document path: {path}")

    # --- Store interface ---

    def member_path(self, record_id: str) -> str:
        return f"{MEMBERS}/{record_id}"

    def mirror_path(self, org_id: str, user_id: str) -> str:
        return f"organizations/{org_id}/members/{user_id}"

    async def fetch_members(self) -> list[MemberRecord]:
        if self.fail_read:
            raise StoreReadError("Could not read collection 'teamMembers': permission denied")
        prefix = f"{MEMBERS}/"
        return [
            MemberRecord.from_document(path[len(prefix):], dict(data))
            for path, data in sorted(self.docs.items())
            if path.startswith(prefix) and path.count("/") == 1
        ]

    async def get_mirror(self, org_id: str, user_id: str) -> Optional[MirrorRecord]:
        self.mirror_lookups += 1
        if user_id in self.fail_mirror_users:
            raise PermissionError("Missing or insufficient permissions.")
        data = self.mirror(org_id, user_id)
        if data is None:
            return None
        return MirrorRecord.from_document(data)

    def batch(self) -> FakeBatch:
        self.batches_opened += 1
        return FakeBatch(self)

    async def close(self) -> None:
        self.closed = True
