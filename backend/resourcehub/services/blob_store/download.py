"""Blob download pipeline.

open_download() does every check that can fail cleanly (metadata lookup,
range validation, first chunk read) before the caller commits to a
response. After that, iter_bytes() streams the remaining chunks one at a
time; nothing holds more than a single chunk in memory.
"""
import logging
import re
import uuid
from typing import AsyncIterator, Optional

import anyio

from resourcehub.services.blob_store.errors import BlobNotFound, CorruptedFile, RangeNotSatisfiable
from resourcehub.services.blob_store.handle import StorageHandle
from resourcehub.services.blob_store.metadata_index import FileMetadata

logger = logging.getLogger(__name__)

_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


def parse_range_header(value: Optional[str]) -> Optional[tuple[Optional[int], Optional[int]]]:
    """Parse a single "bytes=a-b" range. Anything else is ignored (None)."""
    if not value:
        return None
    match = _RANGE_RE.match(value.strip())
    if not match:
        return None
    start, end = match.groups()
    if not start and not end:
        return None
    return (int(start) if start else None, int(end) if end else None)


def resolve_range(
    size_bytes: int, requested: Optional[tuple[Optional[int], Optional[int]]], file_id=None
) -> Optional[tuple[int, int]]:
    """Turn a requested range into inclusive (start, end) offsets within the file."""
    if requested is None:
        return None
    start, end = requested
    if start is None:
        # suffix range: the last `end` bytes
        if not end or size_bytes == 0:
            raise RangeNotSatisfiable("Range not satisfiable", file_id=file_id, size_bytes=size_bytes)
        return max(0, size_bytes - end), size_bytes - 1
    if start >= size_bytes or (end is not None and end < start):
        raise RangeNotSatisfiable("Range not satisfiable", file_id=file_id, size_bytes=size_bytes)
    if end is None or end >= size_bytes:
        end = size_bytes - 1
    return start, end


def _corrupted(metadata: FileMetadata, detail: str) -> CorruptedFile:
    logger.error(
        "CORRUPTED FILE %s (%s, %d bytes): %s",
        metadata.file_id, metadata.stored_name, metadata.size_bytes, detail,
    )
    return CorruptedFile(f"File {metadata.file_id} is corrupted", file_id=metadata.file_id)


class BlobDownload:
    """An opened download: metadata for response framing plus a one-shot byte producer."""

    def __init__(
        self,
        metadata: FileMetadata,
        byte_range: Optional[tuple[int, int]],
        chunks: Optional[AsyncIterator[bytes]] = None,
        first_chunk: Optional[bytes] = None,
    ):
        self.metadata = metadata
        self.byte_range = byte_range
        self._chunks = chunks
        self._first_chunk = first_chunk
        self._started = False

    @property
    def start(self) -> int:
        return self.byte_range[0] if self.byte_range else 0

    @property
    def end(self) -> int:
        return self.byte_range[1] if self.byte_range else self.metadata.size_bytes - 1

    @property
    def content_length(self) -> int:
        return self.end - self.start + 1 if self.metadata.size_bytes else 0

    @property
    def is_partial(self) -> bool:
        return self.byte_range is not None

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield the requested bytes in order. Can only be consumed once."""
        if self._started:
            raise RuntimeError("Download stream already consumed")
        self._started = True
        if self.content_length == 0:
            return

        meta = self.metadata
        chunk_size = meta.chunk_size_bytes
        seq = self.start // chunk_size
        offset = self.start - seq * chunk_size
        remaining = self.content_length
        chunk = self._first_chunk
        self._first_chunk = None
        try:
            while True:
                expected = min(chunk_size, meta.size_bytes - seq * chunk_size)
                if len(chunk) != expected:
                    raise _corrupted(meta, f"chunk {seq} has {len(chunk)} bytes, expected {expected}")
                piece = chunk[offset:offset + remaining]
                offset = 0
                remaining -= len(piece)
                yield piece
                if remaining == 0:
                    return
                seq += 1
                chunk = await anext(self._chunks, None)
                if chunk is None:
                    raise _corrupted(meta, f"chunk {seq} of {meta.chunk_count} is missing")
        finally:
            with anyio.CancelScope(shield=True):
                await self.aclose()

    async def aclose(self) -> None:
        """Release the chunk cursor. Safe to call more than once."""
        if self._chunks is not None:
            chunks, self._chunks = self._chunks, None
            await chunks.aclose()


async def open_download(
    storage: StorageHandle,
    file_id: uuid.UUID,
    byte_range: Optional[tuple[Optional[int], Optional[int]]] = None,
) -> BlobDownload:
    """Resolve a committed file and prime its chunk stream.

    Raises BlobNotFound when there is no committed metadata, CorruptedFile
    when metadata exists but its chunk data does not, RangeNotSatisfiable
    for ranges outside the file.
    """
    metadata = await storage.index.resolve(file_id)
    resolved = resolve_range(metadata.size_bytes, byte_range, file_id=file_id)
    if metadata.size_bytes == 0:
        return BlobDownload(metadata, resolved)

    start = resolved[0] if resolved else 0
    chunks = storage.chunks.iter_chunks(file_id, start // metadata.chunk_size_bytes)
    try:
        first_chunk = await anext(chunks)
    except BlobNotFound:
        await chunks.aclose()
        raise _corrupted(metadata, "metadata is committed but chunk data is missing")
    except BaseException:
        with anyio.CancelScope(shield=True):
            await chunks.aclose()
        raise
    return BlobDownload(metadata, resolved, chunks, first_chunk)
