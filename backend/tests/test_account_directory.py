"""
Account Directory: promotion, demotion, profile edits and the reconcile sweep.

The identity provider is an in-memory fake; the profile mirror is the memory
store. Assertions check both sides so the pair never disagrees.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backend.identity_access.directory import AccountDirectory, humanize_identifier
from backend.identity_access.domain import Role
from backend.identity_access.errors import InvalidRequest, NotFound, UpstreamError
from backend.identity_access.profiles import AdminProfile, MemoryProfileStore
from backend.tests.utils.fakes import FakeIdentityProvider, FlakyProfileStore


def _fixed_clock():
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def directory(idp: FakeIdentityProvider) -> AccountDirectory:
    return AccountDirectory(idp, MemoryProfileStore(), clock=_fixed_clock)


def test_promote_creates_identity_with_temporary_password(directory, idp):
    profile = directory.promote_to_admin("New.Admin@Example.com", "New", "Admin")

    assert profile.email == "new.admin@example.com"
    assert profile.role is Role.ADMIN
    assert profile.created_at == "2024-05-01T12:00:00+00:00"
    assert idp.created == [profile.uid]
    assert len(idp.passwords[profile.uid]) >= 24
    assert idp.roles[profile.uid] is Role.ADMIN


def test_promote_twice_is_idempotent(directory, idp):
    first = directory.promote_to_admin("a@example.com", "Alice", "Smith")
    second = directory.promote_to_admin("a@example.com", "Alice", "Smith", "https://img/x.png")

    assert first.uid == second.uid
    assert len(idp.created) == 1
    admins = directory.list_admins()
    assert [p.uid for p in admins] == [first.uid]
    assert admins[0].photo_url == "https://img/x.png"
    assert idp.roles[first.uid] is Role.ADMIN


def test_promote_existing_user_reuses_identity(directory, idp):
    uid = idp.add_user("joe@example.com")
    profile = directory.promote_to_admin("joe@example.com", "Joe", "User")
    assert profile.uid == uid
    assert idp.created == []


def test_promote_refuses_sysadmin_target(directory, idp):
    uid = idp.add_user("root@example.com", Role.SYSADMIN)
    with pytest.raises(InvalidRequest) as excinfo:
        directory.promote_to_admin("root@example.com", "Root", "Admin")
    assert excinfo.value.code == "target_is_sysadmin"
    assert idp.roles[uid] is Role.SYSADMIN


def test_promote_refuses_ambiguous_email(directory, idp):
    a = idp.add_user("dup@example.com")
    b = idp.add_user("DUP@example.com")
    with pytest.raises(NotFound) as excinfo:
        directory.promote_to_admin("dup@example.com", "Dup", "Licate")
    assert excinfo.value.code == "ambiguous_email"
    assert idp.roles[a] is Role.USER and idp.roles[b] is Role.USER
    assert directory.list_admins() == []


@pytest.mark.parametrize(
    "email,first,last,code",
    [
        ("", "A", "B", "email_required"),
        ("not-an-email", "A", "B", "invalid_email"),
        ("a@example.com", " ", "B", "first_name_required"),
        ("a@example.com", "A", None, "last_name_required"),
    ],
)
def test_promote_validates_before_any_write(directory, idp, email, first, last, code):
    with pytest.raises(InvalidRequest) as excinfo:
        directory.promote_to_admin(email, first, last)
    assert excinfo.value.code == code
    assert idp.created == []


def test_demote_then_list_admins_excludes_uid(directory, idp):
    profile = directory.promote_to_admin("a@example.com", "Alice", "Smith")
    demoted = directory.demote_from_admin(profile.uid)

    assert demoted.role is Role.USER
    assert idp.roles[profile.uid] is Role.USER
    assert profile.uid not in {p.uid for p in directory.list_admins()}


def test_demote_without_mirror_row_creates_user_row(directory, idp):
    uid = idp.add_user("john.doe@example.com", Role.ADMIN)
    demoted = directory.demote_from_admin(uid)
    assert demoted.role is Role.USER
    assert demoted.first_name == "John Doe"
    assert directory.profiles.get(uid).role is Role.USER


def test_demote_unknown_uid_is_not_found(directory):
    with pytest.raises(NotFound):
        directory.demote_from_admin("uid-missing")


def test_demote_refuses_sysadmin(directory, idp):
    uid = idp.add_user("root@example.com", Role.SYSADMIN)
    with pytest.raises(InvalidRequest):
        directory.demote_from_admin(uid)
    assert idp.roles[uid] is Role.SYSADMIN


def test_update_admin_profile_never_touches_role_claim(directory, idp):
    profile = directory.promote_to_admin("a@example.com", "Alice", "Smith")
    updated = directory.update_admin_profile(profile.uid, "Alicia", "Smythe", "https://img/a.png")

    assert (updated.first_name, updated.last_name, updated.photo_url) == ("Alicia", "Smythe", "https://img/a.png")
    assert updated.role is Role.ADMIN
    assert updated.created_at == profile.created_at
    assert idp.roles[profile.uid] is Role.ADMIN


def test_update_unknown_profile_is_not_found(directory):
    with pytest.raises(NotFound) as excinfo:
        directory.update_admin_profile("uid-missing", "A", "B")
    assert excinfo.value.code == "profile_not_found"


def test_resolve_uid_by_email(directory, idp):
    uid = idp.add_user("ada@example.com", Role.ADMIN)
    assert directory.resolve_uid("ADA@example.com") == uid
    with pytest.raises(NotFound):
        directory.resolve_uid("nobody@example.com")


def test_super_admins_lists_sysadmins_only(directory, idp):
    root = idp.add_user("root@example.com", Role.SYSADMIN)
    idp.add_user("ada@example.com", Role.ADMIN)
    assert [u.uid for u in directory.super_admins()] == [root]


def test_mirror_failure_after_claim_write_surfaces_upstream_error(idp):
    store = FlakyProfileStore()
    directory = AccountDirectory(idp, store, clock=_fixed_clock)
    store.fail_writes = True

    with pytest.raises(UpstreamError):
        directory.promote_to_admin("a@example.com", "Alice", "Smith")

    # Claim is written, mirror is not; a retry converges.
    uid = idp.find_users_by_email("a@example.com")[0].uid
    assert idp.roles[uid] is Role.ADMIN
    assert store.get(uid) is None

    store.fail_writes = False
    retried = directory.promote_to_admin("a@example.com", "Alice", "Smith")
    assert retried.uid == uid
    assert len(idp.created) == 1


def test_claim_failure_leaves_mirror_untouched(idp):
    store = MemoryProfileStore()
    directory = AccountDirectory(idp, store, clock=_fixed_clock)
    idp.fail_set_role = True
    with pytest.raises(UpstreamError):
        directory.promote_to_admin("a@example.com", "Alice", "Smith")
    assert store.list_all() == []


def test_reconcile_repairs_drift_in_both_directions(idp):
    store = MemoryProfileStore()
    directory = AccountDirectory(idp, store, clock=_fixed_clock)
    stale_admin = idp.add_user("stale@example.com", Role.USER)
    missing_admin = idp.add_user("grace.hopper@example.com", Role.ADMIN)
    store.upsert(
        AdminProfile(
            uid=stale_admin,
            email="stale@example.com",
            first_name="Stale",
            last_name="Row",
            photo_url="",
            role=Role.ADMIN,
            created_at="2024-01-01T00:00:00+00:00",
        )
    )

    dry = directory.reconcile(dry_run=True)
    assert dry.fixed == [(stale_admin, "admin", "user")]
    assert dry.created == [missing_admin]
    assert store.get(stale_admin).role is Role.ADMIN

    report = directory.reconcile()
    assert report.checked == 1
    assert store.get(stale_admin).role is Role.USER
    assert store.get(missing_admin).first_name == "Grace Hopper"
    assert [p.uid for p in directory.list_admins()] == [missing_admin]

    again = directory.reconcile()
    assert again.fixed == [] and again.created == []
    assert again.to_json()["dryRun"] is False


def test_humanize_identifier():
    assert humanize_identifier("max.mustermann@example.com") == "Max Mustermann"
    assert humanize_identifier("a_b-c") == "A B C"
    assert humanize_identifier("") == ""
