import os
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from datetime import datetime, timezone
import logging

# Load environment variables as early as possible
load_dotenv()

from .config import settings
from .database import create_db_and_tables
from .bootstrap import get_job_queue, get_notification_channel
from .worker import WorkerRunner
from .routers import images_router, notifications_router
from .middleware import LoggingMiddleware, ErrorHandlingMiddleware, RequestSizeLimitMiddleware
from .exceptions import StorageError, http_exception_handler, storage_exception_handler
from .schemas import HealthResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting {settings.APP_NAME}...")
    app.state.db_init_ok = True
    app.state.db_init_error = None
    app.state.worker_runner = None
    try:
        create_db_and_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        # Do not crash the app; report via health endpoint
        app.state.db_init_ok = False
        app.state.db_init_error = str(e)
        logger.exception("Database initialization failed")

    if settings.WORKER_ENABLED:
        runner = WorkerRunner(get_job_queue())
        runner.start()
        app.state.worker_runner = runner
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    if app.state.worker_runner is not None:
        app.state.worker_runner.stop()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url=("/docs" if settings.DOCS_ENABLED else None),
    redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
    openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
)

# Add custom exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(StorageError, storage_exception_handler)

# Add middleware
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Serve locally stored files
if settings.STORAGE_PROVIDER.lower() == "local":
    os.makedirs(settings.STORAGE_BASE_PATH, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.STORAGE_BASE_PATH), name="uploads")

app.include_router(images_router.router)
app.include_router(notifications_router.router)


# Health check endpoint
@app.get("/health", response_model=HealthResponse)
def health_check():
    runner = getattr(app.state, "worker_runner", None)
    return HealthResponse(
        status="healthy" if getattr(app.state, "db_init_ok", True) else "degraded",
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database={
            "ok": getattr(app.state, "db_init_ok", True),
            "error": getattr(app.state, "db_init_error", None)
        },
        storage_provider=settings.STORAGE_PROVIDER,
        queue_backend=settings.QUEUE_BACKEND,
        workers=runner.concurrency if runner is not None and runner.running else 0,
        subscribers=get_notification_channel().total_subscriber_count(),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
