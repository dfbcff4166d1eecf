from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from travel_desk.core.security import get_current_user
from travel_desk.core.storage import FileValidationError, LocalFileStorage, get_file_storage, slugify
from travel_desk.models.user import User

router = APIRouter(prefix="/files", tags=["files"])

UPLOAD_KINDS = ("document", "image")


@router.post("", status_code=status.HTTP_201_CREATED)
def upload_file(
    file: UploadFile = File(...),
    kind: str = Form(default="document"),
    directory: str = Form(default="reports"),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    """
    Store a travel document or receipt and return its path.

    Reports and expense records reference files by the returned path.
    """
    if kind not in UPLOAD_KINDS:
        raise HTTPException(status_code=422, detail=f"kind must be one of {list(UPLOAD_KINDS)}")

    content = file.file.read()
    try:
        path = storage.store(
            content,
            file.filename or "file",
            slugify(directory),
            current_user.id,
            kind=kind,
            field="file",
        )
    except FileValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": "Invalid file", "errors": [{"field": e.field, "code": "invalid", "message": e.message}]},
        )

    return {"path": path, "url": storage.url(path), "size": len(content)}
