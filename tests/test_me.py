from fastapi.testclient import TestClient
from travel_desk.main import app

from tests.helpers import (
    create_assignment,
    create_report,
    create_user,
    create_work_unit,
    headers,
    make_leader,
)


def test_me_requires_header(db_session):
    client = TestClient(app)
    r = client.get("/me")
    assert r.status_code == 401
    assert "X-User-Email" in r.json()["detail"]


def test_me_unknown_user(db_session):
    client = TestClient(app)
    r = client.get("/me", headers={"X-User-Email": "nobody@local.test"})
    assert r.status_code == 401


def test_me_returns_roles_and_work_unit(db_session):
    unit = create_work_unit(db_session, "100", "Finance")
    u = create_user(db_session, "lead@local.test", "Lead", roles=("employee",))
    make_leader(db_session, u, unit)

    client = TestClient(app)
    r = client.get("/me", headers=headers(u))
    assert r.status_code == 200
    body = r.json()
    assert body["email"] == "lead@local.test"
    assert body["roles"] == ["employee", "leader"]
    assert body["work_unit"]["code"] == "100"
    assert body["heads_work_unit"] is True
    assert body["can_create_assignments"] is True
    assert body["permissions"] == ["assignments.create", "reports.review.section_head"]


def test_me_reports_lists_only_own(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    alice = create_user(db_session, "alice@local.test", "Alice")
    bob = create_user(db_session, "bob@local.test", "Bob")
    a = create_assignment(db_session, admin, [alice, bob])
    mine = create_report(db_session, alice, a)
    create_report(db_session, bob, a)

    client = TestClient(app)
    r = client.get("/me/reports", headers=headers(alice))
    assert r.status_code == 200
    assert [x["id"] for x in r.json()] == [str(mine.id)]

    r = client.get("/me/reports", headers=headers(alice), params={"status": "approved"})
    assert r.json() == []
