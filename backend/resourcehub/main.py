"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from resourcehub.config import settings
from resourcehub.database import async_session, engine, get_db
from resourcehub.dependencies import get_storage
from resourcehub.models import Base
from resourcehub.services.blob_store import (
    BlobStoreError,
    CorruptedFile,
    RangeNotSatisfiable,
    StorageFailure,
    StorageHandle,
    build_storage_handle,
)
from resourcehub.services.blob_store.maintenance import (
    purge_orphan_chunks,
    purge_stale_uploads,
    storage_stats,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, seed defaults, build the storage handle and sweep leftovers."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    from resourcehub.services.seed_defaults import seed_all_defaults
    async with async_session() as session:
        await seed_all_defaults(session)

    app.state.storage = build_storage_handle(settings, async_session)

    # Recover uploads interrupted by a previous crash, then any chunk
    # sets left behind by failed deletes
    try:
        await purge_stale_uploads(app.state.storage, settings.STALE_UPLOAD_MINUTES)
        await purge_orphan_chunks(app.state.storage)
    except StorageFailure as e:
        logger.error(f"Startup blob sweep failed: {e}")

    yield

    await engine.dispose()


app = FastAPI(
    title="ResourceHub API",
    version="1.0.0",
    description="Backend API for sharing study resources.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BlobStoreError)
async def blob_store_error_handler(request: Request, exc: BlobStoreError):
    """Render blob store errors with the status each error class carries."""
    headers = {}
    if isinstance(exc, RangeNotSatisfiable):
        headers["Content-Range"] = f"bytes */{exc.size_bytes}"
    if isinstance(exc, CorruptedFile):
        logger.error(f"Served 500 for corrupted file {exc.file_id} ({request.url.path})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


@app.get("/api/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    storage: StorageHandle = Depends(get_storage),
):
    """Verify API, database connectivity and blob storage state."""
    try:
        await db.execute(text("SELECT 1"))
        stats = await storage_stats(storage)
        return {"status": "ok", "database": "connected", "storage": stats}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from resourcehub.routes.auth import router as auth_router
from resourcehub.routes.resources import router as resources_router
from resourcehub.routes.admin import router as admin_router
from resourcehub.routes.files import router as files_router
app.include_router(auth_router)
app.include_router(resources_router)
app.include_router(admin_router)
app.include_router(files_router)
