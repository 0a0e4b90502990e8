"""Files API routes."""
import logging
from typing import Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, Header, UploadFile, File as FastAPIFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from resourcehub.dependencies import get_current_user, get_storage, require_admin
from resourcehub.models.user import User
from resourcehub.schemas.common import DeleteResponse
from resourcehub.schemas.file import FileInfoResponse
from resourcehub.services.blob_store import (
    FileMetadata,
    StorageFailure,
    StorageHandle,
    delete_blob,
    open_download,
    parse_range_header,
    upload_blob,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


async def retry_storage_once(operation, *args):
    """Run an idempotent blob operation, retrying a single time on StorageFailure."""
    try:
        return await operation(*args)
    except StorageFailure as e:
        logger.warning("%s hit a storage failure (%s), retrying once", operation.__name__, e)
        return await operation(*args)


@router.post("/upload", response_model=FileInfoResponse, status_code=201)
async def upload_file(
    file: UploadFile = FastAPIFile(...),
    storage: StorageHandle = Depends(get_storage),
    user: User = Depends(get_current_user),
):
    """Upload a PDF into the blob store without creating a resource."""
    try:
        metadata = await upload_blob(
            storage,
            file,
            file.filename,
            file.content_type,
            {"uploadedBy": str(user.id)},
        )
    finally:
        await file.close()
    return _to_response(metadata)


@router.get("/{file_id}/info", response_model=FileInfoResponse)
async def get_file_info(
    file_id: UUID,
    storage: StorageHandle = Depends(get_storage),
):
    """Get file metadata by ID."""
    metadata = await retry_storage_once(storage.index.resolve, file_id)
    return _to_response(metadata)


@router.get("/{file_id}")
async def download_file(
    file_id: UUID,
    range_header: Optional[str] = Header(default=None, alias="Range"),
    storage: StorageHandle = Depends(get_storage),
):
    """Stream a file for inline viewing. Supports a single byte range."""
    download = await retry_storage_once(
        open_download, storage, file_id, parse_range_header(range_header)
    )
    metadata = download.metadata
    headers = {
        "Content-Disposition": _content_disposition(metadata.original_name),
        "Content-Length": str(download.content_length),
        "Accept-Ranges": "bytes",
        "Cache-Control": "public, max-age=3600",
        "X-Content-Type-Options": "nosniff",
    }
    status_code = 200
    if download.is_partial:
        status_code = 206
        headers["Content-Range"] = f"bytes {download.start}-{download.end}/{metadata.size_bytes}"

    logger.info(
        "Streaming file %s (%s, %d of %d bytes)",
        file_id, metadata.original_name, download.content_length, metadata.size_bytes,
    )
    return StreamingResponse(
        download.iter_bytes(),
        status_code=status_code,
        media_type=metadata.content_type,
        headers=headers,
        background=BackgroundTask(download.aclose),
    )


@router.delete("/{file_id}", response_model=DeleteResponse)
async def delete_file(
    file_id: UUID,
    storage: StorageHandle = Depends(get_storage),
    admin: User = Depends(require_admin),
):
    """Delete a file's chunks and metadata. Deleting a missing file is not an error."""
    deleted = await retry_storage_once(delete_blob, storage, file_id)
    return {"deleted": deleted, "id": str(file_id)}


def _content_disposition(name: str) -> str:
    """Inline disposition with an ASCII filename plus the exact UTF-8 name (RFC 6266)."""
    fallback = "".join(
        c if 32 <= ord(c) < 127 and c not in '"\\' else "_" for c in name
    ) or "download.pdf"
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(name)}"


def _to_response(metadata: FileMetadata) -> dict:
    """Convert blob metadata to response dict."""
    return {
        "file_id": metadata.file_id,
        "stored_name": metadata.stored_name,
        "original_name": metadata.original_name,
        "content_type": metadata.content_type,
        "size_bytes": metadata.size_bytes,
        "chunk_size_bytes": metadata.chunk_size_bytes,
        "uploaded_at": metadata.uploaded_at,
        "custom_metadata": metadata.custom_metadata,
    }
