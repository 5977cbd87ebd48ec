"""
Firestore access for membership records and org member mirrors.

The store object is created once at program start by ``open_store`` and passed
to every component. Nothing in this package reaches for a module-level client.
"""

from __future__ import annotations

from typing import Any, Optional

import firebase_admin
import structlog
from firebase_admin import credentials, firestore_async
from google.cloud import firestore

from .config import HygieneSettings
from .models import SERVER_TIMESTAMP, MemberRecord, MirrorRecord
from .results import CredentialsError, StoreReadError

log = structlog.get_logger()

APP_NAME = "member-hygiene"


def _to_firestore(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        key: firestore.SERVER_TIMESTAMP if value is SERVER_TIMESTAMP else value
        for key, value in fields.items()
    }


class FirestoreBatch:
    """A single Firestore write batch addressed by document path."""

    def __init__(self, client: firestore.AsyncClient):
        self._client = client
        self._batch = client.batch()

    def set(self, path: str, fields: dict[str, Any]) -> None:
        self._batch.set(self._client.document(path), _to_firestore(fields))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        self._batch.update(self._client.document(path), _to_firestore(fields))

    async def commit(self) -> None:
        await self._batch.commit()


class FirestoreMemberStore:
    """Reads team members and mirrors, and hands out write batches."""

    def __init__(
        self,
        client: firestore.AsyncClient,
        settings: HygieneSettings,
        app: Optional[firebase_admin.App] = None,
    ):
        self._client = client
        self._settings = settings
        self._app = app

    def member_path(self, record_id: str) -> str:
        return f"{self._settings.members_collection}/{record_id}"

    def mirror_path(self, org_id: str, user_id: str) -> str:
        return (
            f"{self._settings.organizations_collection}/{org_id}"
            f"/{self._settings.mirror_subcollection}/{user_id}"
        )

    async def fetch_members(self) -> list[MemberRecord]:
        """Read the whole membership collection in one pass."""
        collection = self._settings.members_collection
        try:
            snapshots = await self._client.collection(collection).get()
        except Exception as exc:
            raise StoreReadError(f"Could not read collection '{collection}': {exc}") from exc

        records = [MemberRecord.from_document(s.id, s.to_dict()) for s in snapshots]
        log.info("store.members_fetched", collection=collection, count=len(records))
        return records

    async def get_mirror(self, org_id: str, user_id: str) -> Optional[MirrorRecord]:
        """Return the mirror document, or None when it does not exist."""
        snapshot = await self._client.document(self.mirror_path(org_id, user_id)).get()
        if not snapshot.exists:
            return None
        return MirrorRecord.from_document(snapshot.to_dict())

    def batch(self) -> FirestoreBatch:
        return FirestoreBatch(self._client)

    async def close(self) -> None:
        if self._app is not None:
            firebase_admin.delete_app(self._app)
            self._app = None


def load_credentials(path: str) -> credentials.Certificate:
    """Load a service account key, converting every failure into CredentialsError."""
    try:
        return credentials.Certificate(path)
    except (OSError, ValueError) as exc:
        raise CredentialsError(
            f"Could not load service account key from '{path}'. "
            "Set FIREBASE_SERVICE_ACCOUNT_PATH or place service-account-key.json "
            f"in the working directory. ({exc})"
        ) from exc


def open_store(settings: HygieneSettings) -> FirestoreMemberStore:
    """Authenticate with the service account key and return a connected store."""
    cred = load_credentials(settings.service_account_path)
    options = {"projectId": settings.project_id} if settings.project_id else None
    try:
        app = firebase_admin.initialize_app(cred, options, name=APP_NAME)
        client = firestore_async.client(app)
    except Exception as exc:
        raise CredentialsError(f"Could not initialize Firestore client: {exc}") from exc

    log.info("store.opened", project_id=cred.project_id, collection=settings.members_collection)
    return FirestoreMemberStore(client, settings, app)
