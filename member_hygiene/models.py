"""
Typed record model for team membership documents and their org mirrors.

Raw Firestore documents are normalized here, once, at the read boundary.
Everything downstream works with ``MemberRecord`` / ``MirrorRecord`` and never
touches the raw dictionaries again.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    TECHNICIAN = "technician"
    FREELANCE = "freelance"
    VIEWER = "viewer"


ALLOWED_ROLES: frozenset[str] = frozenset(r.value for r in Role)

LEGACY_MEMBER_ROLE = "member"

# Legacy role values and the role each one is migrated to.
LEGACY_ROLE_MAP: dict[str, Role] = {
    LEGACY_MEMBER_ROLE: Role.TECHNICIAN,
}


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

class _ServerTimestamp:
    """Placeholder for "current time on the store's server" in planned writes."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

# A timestamp field that holds a value we cannot read. It counts as present
# (so it is never backfilled) and orders after every readable timestamp.
UNREADABLE_TIMESTAMP = datetime.max.replace(tzinfo=timezone.utc)

_DATETIME = TypeAdapter(datetime)


def _normalize_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if not isinstance(value, datetime):
        try:
            value = _DATETIME.validate_python(value)
        except ValidationError:
            return UNREADABLE_TIMESTAMP
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _optional_str(value: Any) -> Optional[str]:
    if not value:
        return None
    return str(value)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class MemberRecord(BaseModel):
    """One team membership document from the primary collection."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    organization_id: Optional[str] = Field(default=None, alias="organizationId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    email: str = ""
    name: Optional[str] = None
    role: str = ""
    viewer_permissions: tuple[str, ...] = Field(default=(), alias="viewerPermissions")
    active: bool = True
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    duplicate_of: Optional[str] = Field(default=None, alias="duplicateOf")

    @field_validator("organization_id", "user_id", "name", "duplicate_of", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        return _optional_str(value)

    @field_validator("email", "role", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("viewer_permissions", mode="before")
    @classmethod
    def _coerce_permissions(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, (list, tuple, set, frozenset)):
            return tuple(str(v) for v in value)
        return ()

    @field_validator("active", mode="before")
    @classmethod
    def _coerce_active(cls, value: Any) -> bool:
        # Only an explicit false deactivates a member.
        return value is not False

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[datetime]:
        return _normalize_timestamp(value)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any] | None) -> "MemberRecord":
        """Build a record from a raw document id and its field dictionary."""
        payload = dict(data or {})
        payload["id"] = doc_id
        return cls.model_validate(payload)

    @property
    def normalized_email(self) -> str:
        return self.email.strip().lower()

    @property
    def label(self) -> str:
        return self.name or self.email or self.id

    @property
    def mirror_eligible(self) -> bool:
        return bool(self.organization_id and self.user_id)

    def with_store_fields(self, fields: dict[str, Any], now: datetime) -> "MemberRecord":
        """Return a copy with stored (camelCase) field values applied.

        ``SERVER_TIMESTAMP`` values are replaced by ``now``.
        """
        updates: dict[str, Any] = {}
        for key, value in fields.items():
            name = _FIELD_BY_ALIAS.get(key, key)
            if value is SERVER_TIMESTAMP:
                value = now
            elif name == "viewer_permissions":
                value = tuple(value)
            updates[name] = value
        return self.model_copy(update=updates)


_FIELD_BY_ALIAS: dict[str, str] = {
    field.alias: name
    for name, field in MemberRecord.model_fields.items()
    if field.alias
}


class MirrorRecord(BaseModel):
    """The ``organizations/{org}/members/{uid}`` document read by the rules layer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    role: str = ""
    active: bool = True
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("active", mode="before")
    @classmethod
    def _coerce_active(cls, value: Any) -> bool:
        # A mirror without an ``active`` field is treated as active.
        return value is not False

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[datetime]:
        return _normalize_timestamp(value)

    @classmethod
    def from_document(cls, data: dict[str, Any] | None) -> "MirrorRecord":
        return cls.model_validate(dict(data or {}))


# ---------------------------------------------------------------------------
# Store interface
# ---------------------------------------------------------------------------

class WriteBatch(Protocol):
    """Path-addressed writes, applied together on ``commit``."""

    def set(self, path: str, fields: dict[str, Any]) -> None:
        ...

    def update(self, path: str, fields: dict[str, Any]) -> None:
        ...

    async def commit(self) -> None:
        ...


class MemberStore(Protocol):
    """What the audit and fix jobs need from the record store."""

    def member_path(self, record_id: str) -> str:
        ...

    def mirror_path(self, org_id: str, user_id: str) -> str:
        ...

    async def fetch_members(self) -> list[MemberRecord]:
        ...

    async def get_mirror(self, org_id: str, user_id: str) -> Optional[MirrorRecord]:
        ...

    def batch(self) -> WriteBatch:
        ...

    async def close(self) -> None:
        ...
