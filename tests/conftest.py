"""
Shared fixtures: a fake store seeded with a small, messy organization.
"""

from datetime import datetime, timezone

import pytest

from .fake_store import FakeStore

T1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T2 = datetime(2024, 6, 1, tzinfo=timezone.utc)
T3 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def messy_store(store):
    """One record per anomaly class, plus a clean one."""
    store.add_member(
        "clean", organizationId="org1", userId="u-clean", email="ok@x.com",
        role="admin", createdAt=T1, updatedAt=T1,
    )
    store.add_mirror("org1", "u-clean", role="admin", active=True, createdAt=T1, updatedAt=T1)

    store.add_member(
        "legacy", organizationId="org1", email="a@x.com", role="member",
        createdAt=T1, updatedAt=T1,
    )
    store.add_member(
        "weird", organizationId="org1", email="w@x.com", role="superuser",
        createdAt=T1, updatedAt=T1,
    )
    store.add_member("orphan", email="o@x.com", role="technician", createdAt=T1, updatedAt=T1)
    store.add_member("no-stamps", organizationId="org1", email="n@x.com", role="technician")
    store.add_member(
        "freelancer", organizationId="org1", email="f@x.com", role="freelance",
        viewerPermissions=["reports"], createdAt=T1, updatedAt=T1,
    )
    store.add_member(
        "viewer", organizationId="org1", email="v@x.com", role="viewer",
        viewerPermissions=["reports", "schedule"], createdAt=T1, updatedAt=T1,
    )
    store.add_member(
        "dup-old", organizationId="org2", email="A@X.com", role="technician",
        createdAt=T1, updatedAt=T1,
    )
    store.add_member(
        "dup-new", organizationId="org2", email=" a@x.com ", role="technician",
        createdAt=T2, updatedAt=T2,
    )
    store.add_member(
        "linked", organizationId="org1", userId="u1", email="l@x.com",
        role="admin", createdAt=T1, updatedAt=T1,
    )
    store.add_member(
        "drifted", organizationId="org1", userId="u2", email="d@x.com",
        role="technician", active=False, createdAt=T1, updatedAt=T1,
    )
    store.add_mirror("org1", "u2", role="viewer", active=True, createdAt=T1, updatedAt=T1)
    return store
