import logging
from datetime import date
from uuid import UUID

from fastapi.testclient import TestClient

from travel_desk.main import app
from travel_desk.models.assignment import Assignment
from travel_desk.models.report import Report

from tests.helpers import (
    add_documentation,
    create_assignment,
    create_report,
    create_user,
    headers,
    store_file,
)


def _payload(*users, **overrides):
    payload = {
        "purpose": "Inspection of the regional warehouse",
        "destination": "Makassar",
        "start_date": "2025-05-05",
        "end_date": "2025-05-07",
        "user_ids": [str(u.id) for u in users],
    }
    payload.update(overrides)
    return payload


def test_create_assignment_notifies_participants(db_session, sink):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    a = create_user(db_session, "a@local.test", "Ana")
    b = create_user(db_session, "b@local.test", "Budi")

    client = TestClient(app)
    r = client.post("/assignments", headers=headers(admin), json=_payload(a, b))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["creator_id"] == str(admin.id)
    assert [p["full_name"] for p in body["participants"]] == ["Ana", "Budi"]

    assert sorted(to for to, _, _ in sink.sent) == ["a@local.test", "b@local.test"]
    _, template, payload = sink.sent[0]
    assert template == "assignment_created"
    assert payload["destination"] == "Makassar"
    assert payload["creator_name"] == "Admin"


def test_participant_without_email_is_skipped(db_session, sink, caplog):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    with_mail = create_user(db_session, "a@local.test", "Ana")
    no_mail = create_user(db_session, None, "Budi")

    client = TestClient(app)
    with caplog.at_level(logging.WARNING, logger="travel_desk.core.notifications"):
        r = client.post("/assignments", headers=headers(admin), json=_payload(with_mail, no_mail))

    assert r.status_code == 201
    assert [to for to, _, _ in sink.sent] == ["a@local.test"]

    warnings = [rec for rec in caplog.records if rec.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "does not have email" in warnings[0].getMessage()
    assert warnings[0].user_id == str(no_mail.id)


def test_failing_sink_does_not_fail_creation(db_session, sink, monkeypatch):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    a = create_user(db_session, "a@local.test", "Ana")

    def boom(*args, **kwargs):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(sink, "send", boom)

    client = TestClient(app)
    r = client.post("/assignments", headers=headers(admin), json=_payload(a))
    assert r.status_code == 201
    assert db_session.get(Assignment, UUID(r.json()["id"])) is not None


def test_leader_can_create_employee_cannot(db_session):
    leader = create_user(db_session, "lead@local.test", "Lead", roles=("leader",))
    emp = create_user(db_session, "emp@local.test", "Emp")

    client = TestClient(app)
    assert client.post("/assignments", headers=headers(leader), json=_payload(emp)).status_code == 201
    assert client.post("/assignments", headers=headers(emp), json=_payload(emp)).status_code == 403


def test_create_validation(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    client = TestClient(app)

    r = client.post("/assignments", headers=headers(admin), json=_payload(emp, purpose="Short"))
    assert r.status_code == 422
    r = client.post("/assignments", headers=headers(admin), json=_payload(emp, start_date="2025-05-08"))
    assert r.status_code == 422
    r = client.post("/assignments", headers=headers(admin), json=_payload())
    assert r.status_code == 422

    r = client.post(
        "/assignments",
        headers=headers(admin),
        json=_payload(emp, user_ids=[str(emp.id), "00000000-0000-0000-0000-000000000001"]),
    )
    assert r.status_code == 422
    assert "00000000-0000-0000-0000-000000000001" in r.json()["detail"]["errors"][0]["message"]


def test_update_only_by_creator_and_notifies_added(db_session, sink):
    creator = create_user(db_session, "lead@local.test", "Lead", roles=("leader",))
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    a = create_user(db_session, "a@local.test", "Ana")
    b = create_user(db_session, "b@local.test", "Budi")
    assignment = create_assignment(db_session, creator, [a])

    client = TestClient(app)
    r = client.put(f"/assignments/{assignment.id}", headers=headers(admin), json=_payload(a, b))
    assert r.status_code == 403

    r = client.put(f"/assignments/{assignment.id}", headers=headers(creator), json=_payload(a, b, destination="Ambon"))
    assert r.status_code == 200, r.text
    assert r.json()["destination"] == "Ambon"
    assert [(to, template) for to, template, _ in sink.sent] == [("b@local.test", "assignment_updated")]


def test_delete_only_by_creator_and_removes_files(db_session, storage):
    creator = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    other_admin = create_user(db_session, "admin2@local.test", "Admin Two", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    assignment = create_assignment(db_session, creator, [emp])
    order = store_file(storage, "order.pdf")
    report = create_report(db_session, emp, assignment, travel_order_file=order)
    photo = storage.store(b"\xff\xd8\xff", "site.jpg", "documentations", emp.id, kind="photo")
    add_documentation(db_session, assignment, emp, photo=photo)

    client = TestClient(app)
    assert client.delete(f"/assignments/{assignment.id}", headers=headers(other_admin)).status_code == 403

    r = client.delete(f"/assignments/{assignment.id}", headers=headers(creator))
    assert r.status_code == 204
    db_session.expire_all()
    assert db_session.get(Assignment, assignment.id) is None
    assert db_session.get(Report, report.id) is None
    assert not storage.exists(order)
    assert not storage.exists(photo)


def test_bulk_delete_is_role_gated_not_owner_gated(db_session):
    creator = create_user(db_session, "lead@local.test", "Lead", roles=("leader",))
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    mine = create_assignment(db_session, creator, [emp])
    theirs = create_assignment(db_session, creator, [emp])
    missing = "00000000-0000-0000-0000-000000000002"

    client = TestClient(app)
    r = client.post("/assignments/bulk-delete", headers=headers(emp), json={"ids": [str(mine.id)]})
    assert r.status_code == 403

    r = client.post(
        "/assignments/bulk-delete",
        headers=headers(admin),
        json={"ids": [str(mine.id), str(theirs.id), missing]},
    )
    assert r.status_code == 200
    assert r.json() == {"deleted": 2, "missing_ids": [missing]}


def test_employee_lists_only_own_assignments(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    other = create_user(db_session, "other@local.test", "Other")
    own = create_assignment(db_session, admin, [emp])
    foreign = create_assignment(db_session, admin, [other])

    client = TestClient(app)
    r = client.get("/assignments", headers=headers(emp))
    assert r.status_code == 200
    assert [x["id"] for x in r.json()] == [str(own.id)]

    assert client.get(f"/assignments/{foreign.id}", headers=headers(emp)).status_code == 404


def test_leader_sees_all_but_cannot_search_by_participant(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    leader = create_user(db_session, "lead@local.test", "Lead", roles=("leader",))
    verificator = create_user(db_session, "verif@local.test", "Verif", roles=("verificator",))
    siti = create_user(db_session, "siti@local.test", "Siti Rahma")
    create_assignment(db_session, admin, [siti], destination="Kupang")
    create_assignment(db_session, admin, [admin], destination="Jayapura")

    client = TestClient(app)
    r = client.get("/assignments", headers=headers(leader), params={"include_pagination": True})
    assert r.json()["pagination"]["total"] == 2

    r = client.get("/assignments", headers=headers(leader), params={"search": "Siti"})
    assert r.json() == []

    for user in (admin, verificator):
        r = client.get("/assignments", headers=headers(user), params={"search": "Siti"})
        assert [x["destination"] for x in r.json()] == ["Kupang"]

    r = client.get("/assignments", headers=headers(leader), params={"search": "kupang"})
    assert [x["destination"] for x in r.json()] == ["Kupang"]


def test_date_and_has_reports_filters(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    with_report = create_assignment(db_session, admin, [emp], start=date(2025, 6, 2))
    without = create_assignment(db_session, admin, [emp], start=date(2025, 6, 9))
    create_report(db_session, emp, with_report)

    client = TestClient(app)
    r = client.get("/assignments", headers=headers(admin), params={"date": "2025-06-09"})
    assert [x["id"] for x in r.json()] == [str(without.id)]

    r = client.get("/assignments", headers=headers(admin), params={"has_reports": True})
    assert [x["id"] for x in r.json()] == [str(with_report.id)]
    assert r.json()[0]["report_count"] == 1

    r = client.get("/assignments", headers=headers(admin), params={"has_reports": False})
    assert [x["id"] for x in r.json()] == [str(without.id)]
