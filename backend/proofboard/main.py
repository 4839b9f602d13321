"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from proofboard import __version__
from proofboard.api import api_router
from proofboard.api.deps import Storage
from proofboard.config import get_settings
from proofboard.database import init_db
from proofboard.services.asset_types import build_default_registry
from proofboard.services.exceptions import ReviewError
from proofboard.services.notifications import default_dispatcher
from proofboard.utils.rate_limiter import limiter

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    await init_db()
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    logger.info("Asset types registered: %s", ", ".join(app.state.registry.types()))
    yield


app = FastAPI(
    title=settings.app_name,
    description="Creative asset review and approval",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Built once per process and handed to routes through dependencies.
app.state.registry = build_default_registry(settings)
app.state.notifier = default_dispatcher()

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(ReviewError)
async def review_error_handler(request: Request, exc: ReviewError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/api/files/{file_path:path}")
async def serve_file(file_path: str, store: Storage):
    """Serve stored asset files and thumbnails."""
    full_path = store.get_absolute_path(file_path)

    # Prevent path traversal before touching the filesystem.
    if not store.is_within_base(full_path):
        return JSONResponse(status_code=403, content={"detail": "Access denied"})

    if not full_path.exists():
        return JSONResponse(status_code=404, content={"detail": "File not found"})

    if not full_path.is_file():
        return JSONResponse(status_code=400, content={"detail": "Invalid file path"})

    return FileResponse(full_path)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
