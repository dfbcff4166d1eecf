import pytest
from fastapi.testclient import TestClient

from travel_desk.core.rbac import RoleFlags, actor_has_permission, permissions_for
from travel_desk.main import app
from travel_desk.models.user import User
from travel_desk.models.rbac import Role, UserRole

from tests.helpers import create_user, headers


def test_admin_ping_forbidden_without_admin_role(db_session):
    # seed user (no roles)
    u = User(email="user@local.test", full_name="User Local")
    db_session.add(u)
    db_session.commit()

    client = TestClient(app)
    r = client.get("/admin/ping", headers={"X-User-Email": "user@local.test"})
    assert r.status_code == 403


def test_admin_ping_ok_with_admin_role(db_session):
    # seed role + user + mapping
    admin_role = Role(name="admin")
    db_session.add(admin_role)
    db_session.commit()
    db_session.refresh(admin_role)

    u = User(email="admin2@local.test", full_name="Admin Two")
    db_session.add(u)
    db_session.commit()
    db_session.refresh(u)

    db_session.add(UserRole(user_id=u.id, role_id=admin_role.id))
    db_session.commit()

    client = TestClient(app)
    r = client.get("/admin/ping", headers={"X-User-Email": "admin2@local.test"})
    assert r.status_code == 200
    assert r.json()["admin"] == "admin2@local.test"


def test_superadmin_counts_as_admin(db_session):
    create_user(db_session, "root@local.test", "Root", roles=("superadmin",))

    client = TestClient(app)
    r = client.get("/admin/ping", headers=headers("root@local.test"))
    assert r.status_code == 200


def test_inactive_user_is_rejected(db_session):
    u = create_user(db_session, "gone@local.test", "Gone", roles=("admin",))
    u.is_active = False
    db_session.commit()

    client = TestClient(app)
    r = client.get("/admin/ping", headers=headers(u))
    assert r.status_code == 401


def test_role_flags_from_names():
    flags = RoleFlags.from_names({"leader", "employee"})
    assert flags.is_leader and flags.is_employee
    assert not flags.is_admin_or_superadmin
    assert flags.sees_all_assignments

    assert not RoleFlags.from_names({"employee"}).sees_all_assignments
    assert RoleFlags.from_names({"superadmin"}).is_admin_or_superadmin
    assert RoleFlags.from_names({"leader"}).cache_key != RoleFlags.from_names({"verificator"}).cache_key


def test_permissions_follow_roles(db_session):
    assert permissions_for({"employee"}) == set()
    assert "reports.review.commitment_officer" in permissions_for({"verificator"})
    assert "audit.read" in permissions_for({"superadmin"})

    verificator = create_user(db_session, "verif@local.test", "Verif", roles=("verificator",))
    assert actor_has_permission(db_session, verificator, "reports.review.commitment_officer")
    assert not actor_has_permission(db_session, verificator, "assignments.create")
    with pytest.raises(KeyError):
        actor_has_permission(db_session, verificator, "reports.delete")
