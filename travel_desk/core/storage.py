"""
Local-disk file storage for receipts, travel documents and documentation photos.

Stored paths are relative to STORAGE_ROOT and are what the database keeps.
"""
import logging
import re
import uuid
from datetime import datetime
from pathlib import Path, PurePosixPath

from travel_desk.core.config import settings

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "svg"})
PHOTO_EXTENSIONS = frozenset({"jpg", "jpeg", "png"})

ALLOWED_EXTENSIONS = {
    "image": IMAGE_EXTENSIONS,
    "photo": PHOTO_EXTENSIONS,
    "document": IMAGE_EXTENSIONS | {"pdf"},
}


class FileValidationError(ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "file"


class LocalFileStorage:
    def __init__(self, root: str | Path, url_prefix: str = "/storage", max_bytes: int = 2 * 1024 * 1024):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def _resolve(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise FileValidationError("path", "Invalid file path")
        return self.root / rel

    def validate(self, filename: str, size: int, kind: str = "document", field: str = "file") -> str:
        allowed = ALLOWED_EXTENSIONS.get(kind)
        if allowed is None:
            raise FileValidationError(field, f"Unknown file kind: {kind}")
        ext = Path(filename).suffix.lower().lstrip(".")
        if ext not in allowed:
            raise FileValidationError(field, f"File type .{ext or '?'} not allowed; expected one of {sorted(allowed)}")
        if size > self.max_bytes:
            raise FileValidationError(field, f"File exceeds the {self.max_bytes // 1024} KB limit")
        if size == 0:
            raise FileValidationError(field, "File is empty")
        return ext

    def store(
        self,
        content: bytes,
        filename: str,
        directory: str,
        owner_id: uuid.UUID | str,
        kind: str = "document",
        field: str = "file",
    ) -> str:
        """Validate and write `content`; returns the stored relative path."""
        ext = self.validate(filename, len(content), kind, field)
        stem = slugify(Path(filename).stem)
        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        name = f"{stem}-{owner_id}-{stamp}"

        rel = PurePosixPath(directory) / f"{name}.{ext}"
        n = 1
        while self._resolve(str(rel)).exists():
            rel = PurePosixPath(directory) / f"{name}-{n}.{ext}"
            n += 1

        target = self._resolve(str(rel))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.debug("Stored %s (%s bytes)", rel, len(content))
        return str(rel)

    def exists(self, path: str | None) -> bool:
        if not path:
            return False
        try:
            return self._resolve(path).is_file()
        except FileValidationError:
            return False

    def delete(self, path: str | None) -> None:
        if not self.exists(path):
            return
        self._resolve(path).unlink()
        logger.debug("Deleted %s", path)

    def url(self, path: str | None) -> str | None:
        if not self.exists(path):
            return None
        return f"{self.url_prefix}/{path}"


def get_file_storage() -> LocalFileStorage:
    return LocalFileStorage(settings.STORAGE_ROOT, settings.STORAGE_URL_PREFIX, settings.MAX_UPLOAD_BYTES)


_OWNER_SEGMENT = re.compile(
    r"-(?P<owner>[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})-\d{14}(?:-\d+)?\.[a-z0-9]+$"
)


def stored_owner(path: str | None) -> str | None:
    """Owner id embedded in a stored file name, or None when the name doesn't carry one."""
    if not path:
        return None
    m = _OWNER_SEGMENT.search(PurePosixPath(path).name)
    return m.group("owner") if m else None


def require_stored(
    storage: LocalFileStorage,
    references: dict[str, str | None],
    owner_id: uuid.UUID | str | None = None,
) -> list[dict]:
    """
    Field errors for references that don't point at a stored file.

    With `owner_id`, files uploaded by someone else are rejected too.
    """
    errors = []
    for name, path in references.items():
        if path is None:
            continue
        if not storage.exists(path):
            errors.append({"field": name, "code": "not_found", "message": "File not found in storage; upload it first"})
        elif owner_id is not None and stored_owner(path) != str(owner_id):
            errors.append({"field": name, "code": "not_owner", "message": "File was uploaded by another user"})
    return errors
