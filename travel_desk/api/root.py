from fastapi import APIRouter

router = APIRouter()


@router.get("/")
def root():
    return {
        "name": "Travel Desk",
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "dashboard": "/dashboard",
    }
