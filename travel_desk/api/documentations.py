from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from sqlalchemy.orm import Session

from travel_desk.core.audit import log_event
from travel_desk.core.dashboard import invalidate_dashboard
from travel_desk.core.expenses import delete_unreferenced
from travel_desk.core.rbac import ADMIN_ROLES, RoleFlags, actor_has_any_role, get_role_flags
from travel_desk.core.security import get_current_user
from travel_desk.core.storage import FileValidationError, LocalFileStorage, get_file_storage
from travel_desk.core.visibility import assignment_scope
from travel_desk.db.session import get_db
from travel_desk.models.assignment import Assignment, AssignmentDocumentation
from travel_desk.models.user import User
from travel_desk.schemas.assignment import DocumentationOut

router = APIRouter(prefix="/assignments/{assignment_id}/documentations", tags=["documentations"])

PHOTO_DIRECTORY = "documentations"


def to_out(d: AssignmentDocumentation, storage: LocalFileStorage) -> DocumentationOut:
    return DocumentationOut(
        id=str(d.id),
        assignment_id=str(d.assignment_id),
        uploaded_by_id=str(d.uploaded_by_id) if d.uploaded_by_id else None,
        photo=d.photo,
        photo_url=storage.url(d.photo),
        address=d.address,
        latitude=d.latitude,
        longitude=d.longitude,
        created_at=d.created_at,
        updated_at=d.updated_at,
    )


def _get_visible_assignment_or_404(db: Session, assignment_id: UUID, user: User, flags: RoleFlags) -> Assignment:
    a = (
        db.query(Assignment)
        .filter(Assignment.id == assignment_id, assignment_scope(user, flags))
        .one_or_none()
    )
    if not a:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return a


@router.get("", response_model=list[DocumentationOut])
def list_documentations(
    assignment_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    a = _get_visible_assignment_or_404(db, assignment_id, current_user, flags)
    return [to_out(d, storage) for d in a.documentations]


@router.post("", response_model=DocumentationOut, status_code=status.HTTP_201_CREATED)
def upload_documentation(
    assignment_id: UUID,
    photo: UploadFile = File(...),
    address: str | None = Form(default=None, max_length=500),
    latitude: float | None = Form(default=None, ge=-90, le=90),
    longitude: float | None = Form(default=None, ge=-180, le=180),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    """Participants attach geo-tagged photos (jpg, jpeg or png) to an assignment."""
    a = _get_visible_assignment_or_404(db, assignment_id, current_user, flags)
    if current_user.id not in a.participant_ids:
        raise HTTPException(status_code=403, detail="Only assignment participants can upload documentation")

    content = photo.file.read()
    try:
        path = storage.store(
            content,
            photo.filename or "photo",
            PHOTO_DIRECTORY,
            current_user.id,
            kind="photo",
            field="photo",
        )
    except FileValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": "Invalid photo", "errors": [{"field": e.field, "code": "invalid", "message": e.message}]},
        )

    d = AssignmentDocumentation(
        assignment_id=a.id,
        uploaded_by_id=current_user.id,
        photo=path,
        address=address,
        latitude=latitude,
        longitude=longitude,
    )
    db.add(d)
    db.flush()

    log_event(
        db=db,
        actor=current_user,
        action="DOCUMENTATION_UPLOADED",
        entity_type="assignment",
        entity_id=a.id,
        metadata={"documentation_id": str(d.id), "photo": path},
    )
    db.commit()
    invalidate_dashboard()
    db.refresh(d)
    return to_out(d, storage)


@router.delete("/{documentation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_documentation(
    assignment_id: UUID,
    documentation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    d = db.get(AssignmentDocumentation, documentation_id)
    if not d or d.assignment_id != assignment_id:
        raise HTTPException(status_code=404, detail="Documentation not found")

    if current_user.id not in d.assignment.participant_ids and not actor_has_any_role(db, current_user, ADMIN_ROLES):
        raise HTTPException(status_code=403, detail="Only participants or administrators can delete documentation")

    path = d.photo
    log_event(
        db=db,
        actor=current_user,
        action="DOCUMENTATION_DELETED",
        entity_type="assignment",
        entity_id=assignment_id,
        metadata={"documentation_id": str(d.id), "photo": path},
    )
    db.delete(d)
    db.commit()
    invalidate_dashboard()

    delete_unreferenced(db, storage, [path])
    return Response(status_code=status.HTTP_204_NO_CONTENT)
