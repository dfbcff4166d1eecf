import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from travel_desk.api.admin import router as admin_router
from travel_desk.api.assignments import router as assignments_router
from travel_desk.api.audit import router as audit_router
from travel_desk.api.dashboard import router as dashboard_router
from travel_desk.api.documentations import router as documentations_router
from travel_desk.api.employees import router as employees_router
from travel_desk.api.files import router as files_router
from travel_desk.api.health import router as health_router
from travel_desk.api.masters import router as masters_router
from travel_desk.api.me import router as me_router
from travel_desk.api.reports import router as reports_router
from travel_desk.api.reviews import router as reviews_router
from travel_desk.api.root import router as root_router
from travel_desk.api.work_units import router as work_units_router
from travel_desk.core.config import settings
from travel_desk.db.base import Base
from travel_desk.db.session import engine

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("travel_desk")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # schema is owned by metadata; there are no migration revisions to apply
    Base.metadata.create_all(bind=engine)
    logger.info("Travel Desk started (env=%s)", settings.APP_ENV)
    yield


app = FastAPI(title="Travel Desk", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error (actor=%s) %s %s",
        getattr(request.state, "actor_id", None),
        request.method,
        request.url.path,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(root_router)
app.include_router(health_router)
app.include_router(me_router)
app.include_router(admin_router)
app.include_router(dashboard_router)
app.include_router(assignments_router)
app.include_router(documentations_router)
app.include_router(reports_router)
app.include_router(reviews_router)
app.include_router(files_router)
app.include_router(employees_router)
app.include_router(work_units_router)
app.include_router(masters_router)
app.include_router(audit_router)

app.mount(
    settings.STORAGE_URL_PREFIX,
    StaticFiles(directory=settings.STORAGE_ROOT, check_dir=False),
    name="storage",
)
