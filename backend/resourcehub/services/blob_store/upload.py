"""Blob upload pipeline.

validate -> new id -> pending metadata -> chunk writes -> commit.

Anything that goes wrong after the id exists (storage error, size cap,
client disconnect, task cancellation) rolls back the chunks written so far
and the pending metadata before the error propagates.
"""
import logging
import os
import secrets
import uuid
from contextlib import aclosing
from typing import Any, AsyncIterable, AsyncIterator, Optional, Protocol, Union

import anyio

from resourcehub.services.blob_store.errors import InvalidFileType, SizeExceeded, StorageFailure
from resourcehub.services.blob_store.handle import (
    DEFAULT_CONTENT_TYPE,
    GENERIC_CONTENT_TYPES,
    BlobStoreConfig,
    StorageHandle,
)
from resourcehub.services.blob_store.metadata_index import DeclaredMetadata, FileMetadata

logger = logging.getLogger(__name__)

# Read size used when pulling from file-like sources
READ_BLOCK_SIZE = 64 * 1024


class AsyncReader(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


ByteSource = Union[AsyncReader, AsyncIterable[bytes]]


def clean_display_name(original_name: Optional[str]) -> str:
    """Drop any directory part a client sent along with the filename."""
    name = (original_name or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    return name


def validate_file_type(
    config: BlobStoreConfig, original_name: str, content_type: Optional[str]
) -> str:
    """Check the extension and declared type. Returns the content type to store."""
    ext = os.path.splitext(original_name)[1].lower()
    if ext not in config.allowed_extensions:
        allowed = ", ".join(sorted(config.allowed_extensions))
        raise InvalidFileType(f"Only {allowed} files are allowed")

    declared = (content_type or "").split(";")[0].strip().lower()
    if declared in GENERIC_CONTENT_TYPES:
        return DEFAULT_CONTENT_TYPE
    if declared not in config.allowed_content_types:
        raise InvalidFileType(f"Content type '{declared}' is not allowed")
    return declared


async def _read_blocks(source: ByteSource) -> AsyncIterator[bytes]:
    if hasattr(source, "read"):
        while True:
            block = await source.read(READ_BLOCK_SIZE)
            if not block:
                return
            yield block
    else:
        async for block in source:
            if block:
                yield block


async def iter_windows(source: ByteSource, window_size: int) -> AsyncIterator[bytes]:
    """Re-slice a byte source so every window but the last is exactly window_size."""
    buffer = bytearray()
    async with aclosing(_read_blocks(source)) as blocks:
        async for block in blocks:
            buffer += block
            while len(buffer) >= window_size:
                yield bytes(buffer[:window_size])
                del buffer[:window_size]
    if buffer:
        yield bytes(buffer)


async def _rollback(storage: StorageHandle, file_id: uuid.UUID) -> None:
    # Leftovers after a failed rollback are picked up by the maintenance sweeps
    try:
        removed = await storage.chunks.delete_chunks(file_id)
        if removed:
            logger.info("Rolled back %d chunk(s) of upload %s", removed, file_id)
    except StorageFailure as e:
        logger.error("Rollback could not delete chunks of %s: %s", file_id, e)
    try:
        await storage.index.delete(file_id)
    except StorageFailure as e:
        logger.error("Rollback could not delete pending metadata of %s: %s", file_id, e)


async def upload_blob(
    storage: StorageHandle,
    source: ByteSource,
    original_name: Optional[str],
    content_type: Optional[str] = None,
    custom_metadata: Optional[dict[str, Any]] = None,
) -> FileMetadata:
    """Stream source into the blob store and return the committed metadata."""
    config = storage.config
    display_name = clean_display_name(original_name)
    stored_type = validate_file_type(config, display_name, content_type)

    file_id = uuid.uuid4()
    ext = os.path.splitext(display_name)[1].lower()
    declared = DeclaredMetadata(
        stored_name=secrets.token_hex(16) + ext,
        original_name=display_name,
        content_type=stored_type,
        chunk_size_bytes=config.chunk_size_bytes,
        custom_metadata={"originalName": display_name, **(custom_metadata or {})},
    )

    size = 0
    seq = 0
    try:
        await storage.index.create_pending(file_id, declared)
        async with aclosing(iter_windows(source, config.chunk_size_bytes)) as windows:
            async for window in windows:
                size += len(window)
                if size > config.max_size_bytes:
                    raise SizeExceeded(
                        f"File exceeds the {config.max_size_bytes} byte limit",
                        file_id=file_id,
                    )
                await storage.chunks.put_chunk(file_id, seq, window)
                seq += 1
        metadata = await storage.index.commit(file_id, size)
    except BaseException as e:
        logger.warning(
            "Upload %s (%s) aborted after %d chunk(s): %s",
            file_id, display_name, seq, type(e).__name__,
        )
        # Must finish even when the surrounding cancel scope stays cancelled
        with anyio.CancelScope(shield=True):
            await _rollback(storage, file_id)
        raise

    logger.info(
        "Stored file %s as %s (%d bytes, %d chunk(s))",
        file_id, declared.stored_name, size, seq,
    )
    return metadata
