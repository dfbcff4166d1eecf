import uuid

import pytest
from fastapi.testclient import TestClient

from travel_desk.core.storage import FileValidationError, LocalFileStorage, require_stored, slugify, stored_owner
from travel_desk.main import app
from travel_desk.models.assignment import AssignmentDocumentation

from tests.helpers import add_documentation, create_assignment, create_user, headers

JPEG = b"\xff\xd8\xff\xe0fake-jpeg"


def test_store_names_and_urls(tmp_path):
    storage = LocalFileStorage(tmp_path, "/files/")
    path = storage.store(b"%PDF-1.4", "Surat Tugas 01.PDF", "reports", "u1")

    assert path.startswith("reports/surat-tugas-01-u1-")
    assert path.endswith(".pdf")
    assert (tmp_path / path).read_bytes() == b"%PDF-1.4"
    assert storage.url(path) == f"/files/{path}"

    again = storage.store(b"%PDF-1.4", "Surat Tugas 01.PDF", "reports", "u1")
    assert again != path


def test_validation_rules(tmp_path):
    storage = LocalFileStorage(tmp_path, max_bytes=10)

    with pytest.raises(FileValidationError) as exc:
        storage.store(b"x", "notes.docx", "reports", "u1")
    assert exc.value.field == "file"

    with pytest.raises(FileValidationError):
        storage.store(b"x", "scan.pdf", "documentations", "u1", kind="photo", field="photo")
    with pytest.raises(FileValidationError, match="limit"):
        storage.store(b"x" * 11, "big.png", "reports", "u1", kind="image")
    with pytest.raises(FileValidationError, match="empty"):
        storage.store(b"", "blank.pdf", "reports", "u1")


def test_traversal_and_missing_paths(tmp_path):
    storage = LocalFileStorage(tmp_path / "root")
    (tmp_path / "secret.pdf").write_bytes(b"x")

    assert storage.exists("../secret.pdf") is False
    assert storage.url("../secret.pdf") is None
    assert storage.url(None) is None
    storage.delete("reports/nothing.pdf")

    errors = require_stored(storage, {"spd_file": "reports/nothing.pdf", "travel_order_file": None})
    assert [e["field"] for e in errors] == ["spd_file"]


def test_references_must_belong_to_the_uploader(tmp_path):
    storage = LocalFileStorage(tmp_path)
    owner = uuid.uuid4()
    path = storage.store(b"%PDF-1.4", "order.pdf", "reports", owner)

    assert stored_owner(path) == str(owner)
    assert stored_owner("reports/legacy.pdf") is None
    assert require_stored(storage, {"spd_file": path}, owner_id=owner) == []

    errors = require_stored(storage, {"spd_file": path}, owner_id=uuid.uuid4())
    assert errors == [{"field": "spd_file", "code": "not_owner", "message": "File was uploaded by another user"}]


def test_slugify():
    assert slugify("  Kwitansi Hotel (2)  ") == "kwitansi-hotel-2"
    assert slugify("***") == "file"


def test_upload_endpoint(db_session, storage):
    emp = create_user(db_session, "emp@local.test", "Emp")
    client = TestClient(app)

    r = client.post(
        "/files",
        headers=headers(emp),
        data={"kind": "document", "directory": "Receipts Hotel"},
        files={"file": ("receipt.pdf", b"%PDF-1.4 receipt", "application/pdf")},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["path"].startswith("receipts-hotel/receipt-")
    assert body["size"] == len(b"%PDF-1.4 receipt")
    assert storage.exists(body["path"])

    r = client.post(
        "/files",
        headers=headers(emp),
        files={"file": ("script.exe", b"MZ", "application/octet-stream")},
    )
    assert r.status_code == 422
    assert r.json()["detail"]["errors"][0]["field"] == "file"

    r = client.post("/files", headers=headers(emp), data={"kind": "photo"}, files={"file": ("a.jpg", JPEG, "image/jpeg")})
    assert r.status_code == 422


# ---- assignment documentation ----

def test_participant_uploads_documentation(db_session, storage):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    a = create_assignment(db_session, admin, [emp])

    client = TestClient(app)
    r = client.post(
        f"/assignments/{a.id}/documentations",
        headers=headers(emp),
        data={"address": "Jl. Sudirman No. 1, Makassar", "latitude": "-5.1477", "longitude": "119.4327"},
        files={"photo": ("site.jpg", JPEG, "image/jpeg")},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["uploaded_by_id"] == str(emp.id)
    assert body["latitude"] == pytest.approx(-5.1477)
    assert body["photo_url"] == f"/storage/{body['photo']}"
    assert storage.exists(body["photo"])

    r = client.get(f"/assignments/{a.id}/documentations", headers=headers(admin))
    assert [d["id"] for d in r.json()] == [body["id"]]


def test_documentation_upload_rules(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    a = create_assignment(db_session, admin, [emp])
    client = TestClient(app)

    # admins see the assignment but are not participants
    r = client.post(
        f"/assignments/{a.id}/documentations",
        headers=headers(admin),
        files={"photo": ("site.jpg", JPEG, "image/jpeg")},
    )
    assert r.status_code == 403

    r = client.post(
        f"/assignments/{a.id}/documentations",
        headers=headers(emp),
        files={"photo": ("scan.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert r.status_code == 422
    assert r.json()["detail"]["errors"][0]["field"] == "photo"

    r = client.post(
        f"/assignments/{a.id}/documentations",
        headers=headers(emp),
        data={"latitude": "91"},
        files={"photo": ("site.jpg", JPEG, "image/jpeg")},
    )
    assert r.status_code == 422
    assert db_session.query(AssignmentDocumentation).count() == 0


def test_delete_documentation_by_participant_or_admin(db_session, storage):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    other = create_user(db_session, "other@local.test", "Other")
    a = create_assignment(db_session, admin, [emp])
    photo = storage.store(JPEG, "site.jpg", "documentations", emp.id, kind="photo")
    mine = add_documentation(db_session, a, emp, photo=photo)
    second = add_documentation(db_session, a, emp)

    client = TestClient(app)
    url = f"/assignments/{a.id}/documentations"
    assert client.delete(f"{url}/{mine.id}", headers=headers(other)).status_code == 403

    assert client.delete(f"{url}/{mine.id}", headers=headers(emp)).status_code == 204
    assert not storage.exists(photo)

    assert client.delete(f"{url}/{second.id}", headers=headers(admin)).status_code == 204
    db_session.expire_all()
    assert db_session.query(AssignmentDocumentation).count() == 0
