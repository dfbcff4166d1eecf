from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from travel_desk.core.audit import log_event
from travel_desk.core.dashboard import invalidate_dashboard
from travel_desk.core.expenses import delete_unreferenced, expense_to_dict, upsert_expense
from travel_desk.core.exports import render_expense_pdf, render_travel_report_pdf
from travel_desk.core.rbac import RoleFlags, get_role_flags
from travel_desk.core.report_status import can_resubmit, last_decisive_review_at
from travel_desk.core.report_workflow import assert_report_editable, assert_report_owner, submit_report
from travel_desk.core.security import get_current_user
from travel_desk.core.storage import LocalFileStorage, get_file_storage, require_stored
from travel_desk.core.visibility import report_is_complete, report_scope, report_search, reviewer_listing
from travel_desk.db.session import get_db
from travel_desk.models.assignment import Assignment
from travel_desk.models.enums import ReportStatus, TravelType
from travel_desk.models.report import Report, TransportationType
from travel_desk.models.travel_report import TravelReport
from travel_desk.models.user import User
from travel_desk.schemas.expense import InCityExpenseIn, OutCityExpenseIn, OutCountryExpenseIn
from travel_desk.schemas.pagination import paginate
from travel_desk.schemas.report import (
    ReportCreate,
    ReportDetailOut,
    ReportListResponse,
    ReportOut,
    ReportUpdate,
    TransportationTypeOut,
    TravelReportIn,
    TravelReportOut,
)
from travel_desk.schemas.review import ReviewOut

router = APIRouter(prefix="/reports", tags=["reports"])

STATUS_FILTER_ALL = "all"


def to_out(r: Report) -> ReportOut:
    return ReportOut(
        id=str(r.id),
        user_id=str(r.user_id),
        user_name=r.user.full_name if r.user else None,
        assignment_id=str(r.assignment_id),
        assignment_purpose=r.assignment.purpose if r.assignment else None,
        travel_type=r.travel_type,
        status=r.status,
        travel_order_number=r.travel_order_number,
        destination_city=r.destination_city,
        departure_date=r.departure_date,
        return_date=r.return_date,
        actual_duration=r.actual_duration,
        travel_purpose=r.travel_purpose,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


def review_to_out(rv) -> ReviewOut:
    return ReviewOut(
        id=str(rv.id),
        report_id=str(rv.report_id),
        reviewer_id=str(rv.reviewer_id) if rv.reviewer_id else None,
        reviewer_name=rv.reviewer.full_name if rv.reviewer else None,
        reviewer_type=rv.reviewer_type,
        status=rv.status,
        notes=rv.notes,
        created_at=rv.created_at,
    )


def travel_report_to_out(t: TravelReport) -> TravelReportOut:
    return TravelReportOut(
        id=str(t.id),
        report_id=str(t.report_id),
        title=t.title,
        background=t.background,
        purpose_and_objectives=t.purpose_and_objectives,
        scope=t.scope,
        legal_basis=t.legal_basis,
        activities_conducted=t.activities_conducted,
        achievements=t.achievements,
        conclusions=t.conclusions,
        updated_at=t.updated_at,
    )


def to_detail(r: Report, storage: LocalFileStorage) -> ReportDetailOut:
    base = to_out(r).model_dump()
    return ReportDetailOut(
        **base,
        travel_order_file=r.travel_order_file,
        travel_order_file_url=storage.url(r.travel_order_file),
        spd_file=r.spd_file,
        spd_file_url=storage.url(r.spd_file),
        transportation_types=[
            TransportationTypeOut(id=str(t.id), kind=t.kind, label=t.label) for t in r.transportation_types
        ],
        expense=expense_to_dict(r.expense_detail, storage),
        travel_report=travel_report_to_out(r.travel_report) if r.travel_report else None,
        reviews=[review_to_out(rv) for rv in r.reviews],
        last_review_at=last_decisive_review_at(r),
        can_resubmit=can_resubmit(r),
    )


def get_visible_report_or_404(db: Session, report_id: UUID, user: User, flags: RoleFlags) -> Report:
    r = (
        db.query(Report)
        .filter(Report.id == report_id, or_(report_scope(user, flags), Report.user_id == user.id))
        .one_or_none()
    )
    if not r:
        raise HTTPException(status_code=404, detail="Report not found")
    return r


def _get_report_or_404(db: Session, report_id: UUID) -> Report:
    r = db.get(Report, report_id)
    if not r:
        raise HTTPException(status_code=404, detail="Report not found")
    return r


def _load_transportation_types(db: Session, ids: list[UUID]) -> list[TransportationType]:
    wanted = list(dict.fromkeys(ids))
    if not wanted:
        return []
    rows = db.query(TransportationType).filter(TransportationType.id.in_(wanted)).all()
    found = {t.id for t in rows}
    missing = [str(i) for i in wanted if i not in found]
    if missing:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Unknown transportation types",
                "errors": [{"field": "transportation_type_ids", "code": "not_found", "message": f"Transportation type {m} does not exist"} for m in missing],
            },
        )
    return rows


def _raise_file_errors(errors: list[dict]):
    if errors:
        raise HTTPException(status_code=422, detail={"message": "File validation failed", "errors": errors})


@router.get("", response_model=ReportListResponse)
def list_reports(
    search: str | None = Query(default=None, description="Search purpose, destination, owner name or assignment purpose"),
    status_filter: str | None = Query(
        default=None,
        alias="status",
        description="draft, submitted, rejected, approved or 'all'. Defaults to submitted for reviewers, draft otherwise",
    ),
    travel_type: TravelType | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
):
    """
    Reports visible to the caller, one status at a time, with per-status totals.

    Verificators and leaders only see reports that are complete enough to review.
    """
    query = db.query(Report).filter(report_scope(current_user, flags))
    if reviewer_listing(flags):
        query = query.filter(report_is_complete())
    if search:
        query = query.filter(report_search(search))
    if travel_type:
        query = query.filter(Report.travel_type == travel_type.value)

    totals = {s.value: 0 for s in ReportStatus}
    for report_status, n in query.with_entities(Report.status, func.count(Report.id)).group_by(Report.status).all():
        totals[report_status] = n

    effective = status_filter or (
        ReportStatus.SUBMITTED.value if reviewer_listing(flags) else ReportStatus.DRAFT.value
    )
    if effective != STATUS_FILTER_ALL:
        if effective not in totals:
            raise HTTPException(status_code=422, detail=f"Unknown status filter: {effective}")
        query = query.filter(Report.status == effective)

    query = query.options(selectinload(Report.user), selectinload(Report.assignment)).order_by(
        Report.created_at.desc()
    )
    page = paginate(query, limit=limit, offset=offset, convert=to_out)
    return ReportListResponse(items=page.items, pagination=page.pagination, totals=totals)


@router.get("/{report_id}", response_model=ReportDetailOut)
def get_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    return to_detail(get_visible_report_or_404(db, report_id, current_user, flags), storage)


@router.post("", response_model=ReportDetailOut, status_code=status.HTTP_201_CREATED)
def create_report(
    payload: ReportCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    a = db.get(Assignment, payload.assignment_id)
    if not a:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if current_user.id not in a.participant_ids:
        raise HTTPException(status_code=403, detail="Only assignment participants can file a report")

    existing = (
        db.query(Report.id)
        .filter(Report.assignment_id == a.id, Report.user_id == current_user.id)
        .one_or_none()
    )
    if existing:
        raise HTTPException(status_code=409, detail="You already have a report for this assignment")

    _raise_file_errors(
        require_stored(
            storage,
            {"travel_order_file": payload.travel_order_file, "spd_file": payload.spd_file},
            owner_id=current_user.id,
        )
    )
    transportation_types = _load_transportation_types(db, payload.transportation_type_ids)

    try:
        with db.begin_nested():
            r = Report(
                user_id=current_user.id,
                assignment_id=a.id,
                travel_type=payload.travel_type.value,
                status=ReportStatus.DRAFT.value,
                travel_order_number=payload.travel_order_number,
                destination_city=a.destination,
                departure_date=a.start_date,
                return_date=a.end_date,
                actual_duration=payload.actual_duration,
                travel_purpose=a.purpose,
                travel_order_file=payload.travel_order_file,
                spd_file=payload.spd_file,
            )
            r.transportation_types = transportation_types
            db.add(r)
            db.flush()
    except IntegrityError:
        raise HTTPException(status_code=409, detail="You already have a report for this assignment")

    log_event(
        db=db,
        actor=current_user,
        action="REPORT_CREATED",
        entity_type="report",
        entity_id=r.id,
        metadata={"assignment_id": str(a.id), "travel_type": r.travel_type},
    )
    db.commit()
    invalidate_dashboard()

    db.refresh(r)
    return to_detail(r, storage)


@router.patch("/{report_id}", response_model=ReportDetailOut)
def update_report(
    report_id: UUID,
    payload: ReportUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    r = _get_report_or_404(db, report_id)
    assert_report_owner(r, current_user)
    assert_report_editable(r)

    # null means "leave as is"; none of these columns can be cleared
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}

    travel_type = changes.pop("travel_type", None)
    if travel_type is not None and travel_type.value != r.travel_type:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Travel type cannot be changed",
                "errors": [{"field": "travel_type", "code": "immutable", "message": "Travel type is fixed once the report exists"}],
            },
        )

    type_ids = changes.pop("transportation_type_ids", None)
    types_changed = type_ids is not None and set(type_ids) != {t.id for t in r.transportation_types}

    # unchanged values are not edits
    changes = {k: v for k, v in changes.items() if getattr(r, k) != v}

    file_fields = {k: changes[k] for k in ("travel_order_file", "spd_file") if k in changes}
    _raise_file_errors(require_stored(storage, file_fields, owner_id=current_user.id))

    if not changes and not types_changed:
        return to_detail(r, storage)

    replaced = [getattr(r, k) for k in file_fields if getattr(r, k)]
    before = {k: str(getattr(r, k)) for k in changes}

    if types_changed:
        r.transportation_types = _load_transportation_types(db, type_ids)

    for field_name, value in changes.items():
        setattr(r, field_name, value)
    r.updated_at = datetime.utcnow()

    log_event(
        db=db,
        actor=current_user,
        action="REPORT_UPDATED",
        entity_type="report",
        entity_id=r.id,
        metadata={
            "before": before,
            "after": {k: str(v) for k, v in changes.items()},
            "transportation_type_ids": [str(i) for i in type_ids] if types_changed else None,
        },
    )
    db.commit()
    invalidate_dashboard()

    delete_unreferenced(db, storage, replaced)

    db.refresh(r)
    return to_detail(r, storage)


@router.post("/{report_id}/submit", response_model=ReportDetailOut)
def submit(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    r = _get_report_or_404(db, report_id)
    prev = r.status
    submit_report(db, r, current_user)

    log_event(
        db=db,
        actor=current_user,
        action="REPORT_SUBMITTED",
        entity_type="report",
        entity_id=r.id,
        metadata={"from": prev, "to": r.status, "resubmission": prev == ReportStatus.REJECTED.value},
    )
    db.commit()
    invalidate_dashboard()

    return to_detail(r, storage)


def _save_expense(db, storage, current_user, report_id, travel_type: TravelType, payload):
    r = _get_report_or_404(db, report_id)
    assert_report_owner(r, current_user)
    assert_report_editable(r)

    detail, replaced = upsert_expense(db, storage, r, travel_type.value, payload)
    log_event(
        db=db,
        actor=current_user,
        action="REPORT_EXPENSE_SAVED",
        entity_type="report",
        entity_id=r.id,
        metadata={"travel_type": travel_type.value, "replaced_receipts": replaced},
    )
    db.commit()
    invalidate_dashboard()

    delete_unreferenced(db, storage, replaced)
    return expense_to_dict(detail, storage)


@router.put("/{report_id}/expenses/in-city")
def save_in_city_expense(
    report_id: UUID,
    payload: InCityExpenseIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    return _save_expense(db, storage, current_user, report_id, TravelType.IN_CITY, payload)


@router.put("/{report_id}/expenses/out-city")
def save_out_city_expense(
    report_id: UUID,
    payload: OutCityExpenseIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    return _save_expense(db, storage, current_user, report_id, TravelType.OUT_CITY, payload)


@router.put("/{report_id}/expenses/out-country")
def save_out_country_expense(
    report_id: UUID,
    payload: OutCountryExpenseIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    return _save_expense(db, storage, current_user, report_id, TravelType.OUT_COUNTRY, payload)


@router.put("/{report_id}/travel-report", response_model=TravelReportOut)
def save_travel_report(
    report_id: UUID,
    payload: TravelReportIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    r = _get_report_or_404(db, report_id)
    assert_report_owner(r, current_user)
    assert_report_editable(r)

    narrative = r.travel_report
    if narrative is None:
        narrative = TravelReport(report=r, **payload.model_dump())
        db.add(narrative)
    else:
        for field_name, value in payload.model_dump().items():
            setattr(narrative, field_name, value)
    db.flush()

    log_event(
        db=db,
        actor=current_user,
        action="TRAVEL_REPORT_SAVED",
        entity_type="report",
        entity_id=r.id,
        metadata={"title": narrative.title},
    )
    db.commit()
    invalidate_dashboard()
    db.refresh(narrative)
    return travel_report_to_out(narrative)


def _exportable_report_or_404(db: Session, report_id: UUID, user: User, flags: RoleFlags) -> Report:
    r = get_visible_report_or_404(db, report_id, user, flags)
    if r.status != ReportStatus.APPROVED.value:
        raise HTTPException(status_code=409, detail="Only approved reports can be downloaded")
    return r


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{report_id}/export/expense")
def export_expense(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
):
    """Expense breakdown attached to the travel order, as PDF."""
    r = _exportable_report_or_404(db, report_id, current_user, flags)
    if r.expense_detail is None:
        raise HTTPException(status_code=404, detail="Expense details not filled in")
    filename = f"Rincian_Biaya_Perjalanan_Dinas_{r.id}_{datetime.utcnow():%Y-%m-%d}.pdf"
    return _pdf_response(render_expense_pdf(r), filename)


@router.get("/{report_id}/export/travel-report")
def export_travel_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
):
    r = _exportable_report_or_404(db, report_id, current_user, flags)
    if r.travel_report is None:
        raise HTTPException(status_code=404, detail="Travel report not filled in")
    filename = f"Laporan_Perjadin_{r.id}_{datetime.utcnow():%Y-%m-%d}.pdf"
    return _pdf_response(render_travel_report_pdf(r), filename)
