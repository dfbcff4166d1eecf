from pathlib import Path

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from travel_desk.core.dashboard import dashboard_cache
from travel_desk.core.storage import LocalFileStorage, get_file_storage
from travel_desk.db.session import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
def health(
    db: Session = Depends(get_db),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    db.execute(text("SELECT 1"))
    return {
        "status": "ok",
        "database": "ok",
        # created lazily on first upload
        "storage": "ok" if Path(storage.root).is_dir() else "empty",
        "dashboard_cache_entries": len(dashboard_cache),
    }
