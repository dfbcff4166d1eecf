import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from travel_desk.core.report_status import (
    can_resubmit,
    last_decisive_review_at,
    recompute_report_status,
    resolve_status,
    update_all_report_statuses,
)

from tests.helpers import (
    add_documentation,
    add_review,
    backdate,
    create_assignment,
    create_complete_report,
    create_report,
    create_user,
)

CO = "commitment_officer"
SH = "section_head"


def rv(reviewer_type, status):
    return SimpleNamespace(reviewer_type=reviewer_type, status=status)


# ---- resolver ----

@pytest.mark.parametrize("current", ["draft", "submitted"])
def test_no_reviews_keeps_owner_status(current):
    assert resolve_status(current, []) == current


@pytest.mark.parametrize("current", ["approved", "rejected"])
def test_verdict_without_reviews_falls_back_to_submitted(current):
    assert resolve_status(current, []) == "submitted"


def test_one_approval_stays_under_review():
    assert resolve_status("submitted", [rv(CO, "approved")]) == "submitted"
    assert resolve_status("submitted", [rv(SH, "approved")]) == "submitted"


def test_both_types_approved():
    assert resolve_status("submitted", [rv(CO, "approved"), rv(SH, "approved")]) == "approved"


def test_two_approvals_of_same_type_are_not_enough():
    assert resolve_status("submitted", [rv(CO, "approved"), rv(CO, "approved")]) == "submitted"


@pytest.mark.parametrize(
    "reviews",
    [
        [rv(CO, "rejected")],
        [rv(CO, "approved"), rv(SH, "rejected")],
        [rv(CO, "rejected"), rv(SH, "approved")],
        [rv(CO, "approved"), rv(SH, "approved"), rv(SH, "rejected")],
    ],
)
def test_any_rejection_wins(reviews):
    assert resolve_status("submitted", reviews) == "rejected"


def test_resolution_ignores_review_order():
    reviews = [rv(CO, "approved"), rv(SH, "approved"), rv(CO, "rejected")]
    results = {resolve_status("submitted", list(p)) for p in itertools.permutations(reviews)}
    assert results == {"rejected"}


def test_resolver_accepts_enum_members():
    from travel_desk.models.enums import ReviewerType, ReviewStatus

    reviews = [
        rv(ReviewerType.COMMITMENT_OFFICER, ReviewStatus.APPROVED),
        rv(ReviewerType.SECTION_HEAD, ReviewStatus.APPROVED),
    ]
    assert resolve_status("submitted", reviews) == "approved"


# ---- persisted status ----

def test_recompute_does_not_touch_updated_at(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    a = create_assignment(db_session, admin, [emp])
    r = create_report(db_session, emp, a, status="submitted")
    backdate(db_session, r, updated_at=datetime(2025, 1, 1, 8, 0))
    add_review(db_session, r, admin, CO, "rejected")

    assert recompute_report_status(db_session, r) == "rejected"
    db_session.commit()
    db_session.refresh(r)

    assert r.status == "rejected"
    assert r.updated_at.replace(tzinfo=None) == datetime(2025, 1, 1, 8, 0)


def test_update_all_report_statuses_is_idempotent(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    other = create_user(db_session, "other@local.test", "Other")
    a = create_assignment(db_session, admin, [emp, other])
    approved = create_report(db_session, emp, a, status="submitted")
    add_review(db_session, approved, admin, CO, "approved")
    add_review(db_session, approved, admin, SH, "approved")
    untouched = create_report(db_session, other, a, status="draft")

    assert update_all_report_statuses(db_session) == 1
    db_session.commit()
    assert update_all_report_statuses(db_session) == 0

    db_session.refresh(approved)
    db_session.refresh(untouched)
    assert approved.status == "approved"
    assert untouched.status == "draft"


# ---- resubmission eligibility ----

def _rejected_report(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    a = create_assignment(db_session, admin, [emp])
    r = create_complete_report(db_session, emp, a, status="rejected")

    edited = datetime(2025, 1, 10, 9, 0)
    backdate(db_session, r, updated_at=edited)
    backdate(db_session, r.in_city_report, updated_at=edited)
    backdate(db_session, r.travel_report, updated_at=edited)

    add_review(db_session, r, admin, CO, "approved", created_at=datetime(2025, 1, 11, 9, 0))
    add_review(db_session, r, admin, SH, "rejected", created_at=datetime(2025, 1, 12, 9, 0))
    db_session.refresh(r)
    return r, emp


def test_last_decisive_review_at_is_latest(db_session):
    r, _ = _rejected_report(db_session)
    assert last_decisive_review_at(r).replace(tzinfo=None) == datetime(2025, 1, 12, 9, 0)


def test_cannot_resubmit_without_edits(db_session):
    r, _ = _rejected_report(db_session)
    assert can_resubmit(r) is False


def test_report_edit_enables_resubmit(db_session):
    r, _ = _rejected_report(db_session)
    backdate(db_session, r, updated_at=datetime(2025, 1, 12, 9, 1))
    assert can_resubmit(r) is True


def test_expense_edit_enables_resubmit(db_session):
    r, _ = _rejected_report(db_session)
    backdate(db_session, r.in_city_report, updated_at=datetime(2025, 1, 13))
    db_session.refresh(r)
    assert can_resubmit(r) is True


def test_travel_report_edit_enables_resubmit(db_session):
    r, _ = _rejected_report(db_session)
    backdate(db_session, r.travel_report, updated_at=datetime(2025, 1, 13))
    db_session.refresh(r)
    assert can_resubmit(r) is True


def test_documentation_upload_enables_resubmit(db_session):
    r, emp = _rejected_report(db_session)
    add_documentation(db_session, r.assignment, emp)
    db_session.refresh(r.assignment)
    assert can_resubmit(r) is True


def test_edit_at_same_instant_does_not_count(db_session):
    r, _ = _rejected_report(db_session)
    backdate(db_session, r, updated_at=datetime(2025, 1, 12, 9, 0))
    assert can_resubmit(r) is False


def test_can_resubmit_false_without_decisive_review(db_session):
    admin = create_user(db_session, "admin@local.test", "Admin", roles=("admin",))
    emp = create_user(db_session, "emp@local.test", "Emp")
    a = create_assignment(db_session, admin, [emp])
    r = create_complete_report(db_session, emp, a, status="rejected")

    assert last_decisive_review_at(r) is None
    assert can_resubmit(r) is False


def test_can_resubmit_only_for_rejected():
    report = SimpleNamespace(status="approved")
    assert can_resubmit(report) is False


def test_aware_and_naive_timestamps_compare():
    review_at = datetime(2025, 1, 12, 9, 0, tzinfo=timezone.utc)
    report = SimpleNamespace(
        status="rejected",
        reviews=[SimpleNamespace(status="rejected", created_at=review_at)],
        updated_at=datetime(2025, 1, 12, 9, 0) + timedelta(seconds=1),
        in_city_report=None,
        out_city_report=None,
        out_country_report=None,
        travel_report=None,
        assignment=None,
    )
    assert can_resubmit(report) is True
