from decimal import Decimal
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from travel_desk.core.storage import LocalFileStorage, require_stored
from travel_desk.models.assignment import AssignmentDocumentation
from travel_desk.models.enums import TravelType
from travel_desk.models.expense import InCityReport, OutCityReport, OutCountryReport
from travel_desk.models.fullboard_price import FullboardPrice
from travel_desk.models.report import Report

EXPENSE_MODELS = {
    TravelType.IN_CITY.value: InCityReport,
    TravelType.OUT_CITY.value: OutCityReport,
    TravelType.OUT_COUNTRY.value: OutCountryReport,
}


def receipt_pairs(model_cls) -> list[tuple[str, str]]:
    return [(f"{item}_cost", f"{item}_receipt") for item in model_cls.COST_ITEMS]


def upsert_expense(
    db: Session,
    storage: LocalFileStorage,
    report: Report,
    travel_type: str,
    payload: BaseModel,
):
    """
    Create or update the report's expense record for `travel_type`.

    Receipt fields left out of the payload keep their stored file. Returns the
    record and the receipt paths it no longer references.
    """
    if report.travel_type != travel_type:
        raise HTTPException(
            status_code=409,
            detail=f"Report travel type is {report.travel_type}; {travel_type} expenses do not apply",
        )

    model_cls = EXPENSE_MODELS[travel_type]
    detail = getattr(report, Report.DETAIL_ATTRS[travel_type])
    creating = detail is None
    data = payload.model_dump()
    pairs = receipt_pairs(model_cls)

    errors: list[dict] = []
    if creating:
        for cost_field, receipt_field in pairs:
            if data.get(cost_field) is not None and not data.get(receipt_field):
                errors.append(
                    {"field": receipt_field, "code": "required", "message": "Receipt is required when a cost is entered"}
                )
    new_receipts = {
        r: data.get(r)
        for _, r in pairs
        if data.get(r) is not None and (creating or getattr(detail, r) != data.get(r))
    }
    errors.extend(require_stored(storage, new_receipts, owner_id=report.user_id))

    if data.get("fullboard_price_id") is not None and not db.get(FullboardPrice, data["fullboard_price_id"]):
        errors.append({"field": "fullboard_price_id", "code": "not_found", "message": "Fullboard price not found"})

    if errors:
        raise HTTPException(status_code=422, detail={"message": "Expense validation failed", "errors": errors})

    if creating:
        detail = model_cls(report=report)
        db.add(detail)

    receipt_fields = {r for _, r in pairs}
    replaced: list[str] = []
    for key, value in data.items():
        if key in receipt_fields:
            if value is None:
                continue
            old = getattr(detail, key)
            if old and old != value:
                replaced.append(old)
        setattr(detail, key, value)

    db.flush()
    return detail, replaced


def expense_to_dict(detail, storage: LocalFileStorage | None = None) -> dict[str, Any] | None:
    if detail is None:
        return None
    out: dict[str, Any] = {}
    for attr in inspect(detail).mapper.column_attrs:
        value = getattr(detail, attr.key)
        if attr.key == "report_id":
            continue
        if isinstance(value, Decimal):
            value = str(value)
        elif attr.key in ("id", "fullboard_price_id") and value is not None:
            value = str(value)
        out[attr.key] = value
    if storage is not None:
        for _, receipt_field in receipt_pairs(type(detail)):
            out[f"{receipt_field}_url"] = storage.url(out.get(receipt_field))
    return out


def report_file_paths(report: Report) -> list[str]:
    """Every stored file a report references: documents and expense receipts."""
    paths = [report.travel_order_file, report.spd_file]
    for attr in Report.DETAIL_ATTRS.values():
        detail = getattr(report, attr)
        if detail is not None:
            paths.extend(getattr(detail, receipt) for _, receipt in receipt_pairs(type(detail)))
    return [p for p in paths if p]


def assignment_file_paths(assignment) -> list[str]:
    paths = [doc.photo for doc in assignment.documentations if doc.photo]
    for report in assignment.reports:
        paths.extend(report_file_paths(report))
    return paths


def referenced_paths(db: Session, paths) -> set[str]:
    """The subset of `paths` that some report, expense record or documentation still points at."""
    candidates = {p for p in paths if p}
    if not candidates:
        return set()
    columns = [Report.travel_order_file, Report.spd_file, AssignmentDocumentation.photo]
    for model_cls in EXPENSE_MODELS.values():
        columns.extend(getattr(model_cls, receipt) for _, receipt in receipt_pairs(model_cls))
    found: set[str] = set()
    for column in columns:
        found.update(value for (value,) in db.query(column).filter(column.in_(candidates)).all())
    return found


def delete_unreferenced(db: Session, storage: LocalFileStorage, paths) -> None:
    """Delete stored files nothing references any more. Call after commit."""
    keep = referenced_paths(db, paths)
    for path in {p for p in paths if p} - keep:
        storage.delete(path)
