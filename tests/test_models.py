"""Tests for read-boundary normalization of membership documents."""

from datetime import datetime, timezone

from member_hygiene.models import (
    SERVER_TIMESTAMP,
    UNREADABLE_TIMESTAMP,
    MemberRecord,
    MirrorRecord,
)


def test_from_document_maps_camel_case_fields():
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    rec = MemberRecord.from_document("m1", {
        "organizationId": "org1",
        "userId": "u1",
        "email": "A@X.com",
        "role": "admin",
        "viewerPermissions": ["reports"],
        "createdAt": created,
        "updatedAt": created,
        "duplicateOf": "m0",
    })
    assert rec.id == "m1"
    assert rec.organization_id == "org1"
    assert rec.user_id == "u1"
    assert rec.viewer_permissions == ("reports",)
    assert rec.created_at == created
    assert rec.duplicate_of == "m0"
    assert rec.mirror_eligible


def test_blank_and_missing_values_normalize():
    rec = MemberRecord.from_document("m1", {"organizationId": "", "role": None, "email": None})
    assert rec.organization_id is None
    assert rec.user_id is None
    assert rec.role == ""
    assert rec.email == ""
    assert rec.viewer_permissions == ()
    assert rec.created_at is None
    assert rec.active is True
    assert not rec.mirror_eligible


def test_only_explicit_false_deactivates():
    assert MemberRecord.from_document("a", {"active": False}).active is False
    assert MemberRecord.from_document("b", {"active": None}).active is True
    assert MemberRecord.from_document("c", {"active": 0}).active is True
    assert MemberRecord.from_document("d", {}).active is True


def test_non_list_viewer_permissions_become_empty():
    rec = MemberRecord.from_document("m1", {"viewerPermissions": {"reports": True}})
    assert rec.viewer_permissions == ()


def test_naive_timestamps_are_utc():
    rec = MemberRecord.from_document("m1", {"createdAt": datetime(2024, 1, 1)})
    assert rec.created_at.tzinfo is not None


def test_iso_string_timestamp_is_parsed():
    rec = MemberRecord.from_document("m1", {"createdAt": "2024-01-01T00:00:00Z"})
    assert rec.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_unreadable_timestamp_counts_as_present():
    rec = MemberRecord.from_document("m1", {"createdAt": "last tuesday"})
    assert rec.created_at == UNREADABLE_TIMESTAMP


def test_normalized_email_and_label():
    rec = MemberRecord.from_document("m1", {"email": "  Bob@Example.COM "})
    assert rec.normalized_email == "bob@example.com"
    assert rec.label == "  Bob@Example.COM "
    assert MemberRecord.from_document("m2", {"name": "Bob"}).label == "Bob"
    assert MemberRecord.from_document("m3", {}).label == "m3"


def test_with_store_fields_applies_aliases_and_server_time():
    rec = MemberRecord.from_document("m1", {"role": "member", "viewerPermissions": ["x"]})
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    updated = rec.with_store_fields(
        {"role": "technician", "viewerPermissions": [], "updatedAt": SERVER_TIMESTAMP}, now
    )
    assert updated.role == "technician"
    assert updated.viewer_permissions == ()
    assert updated.updated_at == now
    assert rec.role == "member"


def test_mirror_defaults():
    mirror = MirrorRecord.from_document({"role": "admin"})
    assert mirror.active is True
    assert MirrorRecord.from_document({"active": False}).active is False
    assert MirrorRecord.from_document(None).role == ""
