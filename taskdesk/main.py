import fcntl
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from taskdesk.config import settings
from taskdesk.database import AsyncSessionLocal, create_tables
from taskdesk.errors import TaskDeskError
from taskdesk.logging_setup import setup_logging
from taskdesk.routers.auth import router as auth_router
from taskdesk.routers.tasks import router as tasks_router
from taskdesk.routers.users import router as users_router
from taskdesk.routers.roles import router as roles_router
from taskdesk.routers.reports import router as reports_router
from taskdesk.services.seed import seed_defaults

logger = logging.getLogger(__name__)

STARTUP_LOCK_FILE = "/tmp/taskdesk_startup.lock"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(level=settings.LOG_LEVEL, log_file=settings.LOG_FILE or None)

    # Every gunicorn worker runs this; the lock serializes schema creation and seeding
    with open(STARTUP_LOCK_FILE, "w") as lock_fd:
        fcntl.flock(lock_fd, fcntl.LOCK_EX)
        try:
            await create_tables()
            if settings.SEED_DEFAULTS:
                async with AsyncSessionLocal() as db:
                    await seed_defaults(db, settings.SEED_ADMIN_PASSWORD)
        finally:
            fcntl.flock(lock_fd, fcntl.LOCK_UN)

    logger.info("TaskDesk API started (pid %s)", os.getpid())
    yield
    logger.info("TaskDesk API shutting down")


app = FastAPI(
    lifespan=lifespan,
    title="TaskDesk API",
    description="Role-based task management: tasks, users, roles & permissions, stats and reports",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TaskDeskError)
async def taskdesk_exception_handler(request: Request, exc: TaskDeskError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Global exception handler so clients still get JSON (and CORS headers) on failure
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)

    content = {"detail": "Internal Server Error"}
    if settings.EXPOSE_ERROR_DETAILS:
        content["error"] = str(exc)

    return JSONResponse(
        status_code=500,
        content=content,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Credentials": "true"
        }
    )

app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(users_router)
app.include_router(roles_router)
app.include_router(reports_router)

@app.get("/")
def root():
    return {"message": "TaskDesk API running"}
