"""Chunk storage backends.

A chunk is an immutable fragment of a blob keyed by (file_id, seq). Two
backends share one contract: SqlChunkStore keeps payloads in the
blob_chunks table, LocalChunkStore keeps one file per chunk on disk.
Both open a fresh session/file per call so reads never hold a connection
across a whole download.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiofiles
import aiofiles.os
from sqlalchemy import delete, distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from resourcehub.models.blob_chunk import BlobChunk
from resourcehub.services.blob_store.errors import BlobNotFound, StorageFailure

logger = logging.getLogger(__name__)


@contextmanager
def _wrap_storage_errors(operation: str, file_id=None):
    """Re-raise database and filesystem errors as StorageFailure."""
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        logger.error("Chunk store %s failed for %s: %s", operation, file_id, e)
        raise StorageFailure(f"Chunk store {operation} failed", file_id=file_id) from e


class ChunkStore(ABC):
    """Append-only store of ordered binary chunks."""

    @abstractmethod
    async def put_chunk(self, file_id: uuid.UUID, seq: int, data: bytes) -> None:
        """Write one chunk. Writing an existing (file_id, seq) fails."""

    @abstractmethod
    async def get_chunk(self, file_id: uuid.UUID, seq: int) -> Optional[bytes]:
        """Return one chunk payload, or None if it does not exist."""

    @abstractmethod
    async def delete_chunks(self, file_id: uuid.UUID) -> int:
        """Delete every chunk of a file. Returns how many were removed."""

    @abstractmethod
    async def count_chunks(self, file_id: Optional[uuid.UUID] = None) -> int:
        """Count chunks of one file, or of the whole store."""

    @abstractmethod
    async def list_file_ids(self) -> set[uuid.UUID]:
        """Every file id that owns at least one chunk."""

    async def iter_chunks(self, file_id: uuid.UUID, start_seq: int = 0) -> AsyncIterator[bytes]:
        """Yield chunk payloads in sequence order, starting at start_seq.

        Lazy and restartable: each call starts a new pass. Stops at the first
        missing sequence number. Raises BlobNotFound if start_seq itself is
        missing.
        """
        seq = start_seq
        while True:
            data = await self.get_chunk(file_id, seq)
            if data is None:
                if seq == start_seq:
                    raise BlobNotFound(f"No chunk {seq} for file {file_id}", file_id=file_id)
                return
            yield data
            seq += 1


class SqlChunkStore(ChunkStore):
    """Chunks as rows of blob_chunks, one short transaction per call."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def put_chunk(self, file_id: uuid.UUID, seq: int, data: bytes) -> None:
        with _wrap_storage_errors("write", file_id):
            async with self._session_factory() as db:
                db.add(BlobChunk(file_id=file_id, seq=seq, payload=bytes(data)))
                await db.commit()

    async def get_chunk(self, file_id: uuid.UUID, seq: int) -> Optional[bytes]:
        with _wrap_storage_errors("read", file_id):
            async with self._session_factory() as db:
                result = await db.execute(
                    select(BlobChunk.payload).where(
                        BlobChunk.file_id == file_id, BlobChunk.seq == seq
                    )
                )
                return result.scalar_one_or_none()

    async def delete_chunks(self, file_id: uuid.UUID) -> int:
        with _wrap_storage_errors("delete", file_id):
            async with self._session_factory() as db:
                result = await db.execute(
                    delete(BlobChunk).where(BlobChunk.file_id == file_id)
                )
                await db.commit()
                return result.rowcount or 0

    async def count_chunks(self, file_id: Optional[uuid.UUID] = None) -> int:
        with _wrap_storage_errors("count", file_id):
            async with self._session_factory() as db:
                query = select(func.count()).select_from(BlobChunk)
                if file_id is not None:
                    query = query.where(BlobChunk.file_id == file_id)
                return (await db.execute(query)).scalar_one()

    async def list_file_ids(self) -> set[uuid.UUID]:
        with _wrap_storage_errors("list"):
            async with self._session_factory() as db:
                result = await db.execute(select(distinct(BlobChunk.file_id)))
                return set(result.scalars().all())


class LocalChunkStore(ChunkStore):
    """Chunks as files: <base_path>/<file_id hex>/<seq>.chunk."""

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _file_dir(self, file_id: uuid.UUID) -> Path:
        return self.base_path / file_id.hex

    def _chunk_path(self, file_id: uuid.UUID, seq: int) -> Path:
        return self._file_dir(file_id) / f"{seq:08d}.chunk"

    async def put_chunk(self, file_id: uuid.UUID, seq: int, data: bytes) -> None:
        with _wrap_storage_errors("write", file_id):
            await aiofiles.os.makedirs(self._file_dir(file_id), exist_ok=True)
            # "xb" refuses to overwrite an existing chunk
            async with aiofiles.open(self._chunk_path(file_id, seq), "xb") as f:
                await f.write(data)

    async def get_chunk(self, file_id: uuid.UUID, seq: int) -> Optional[bytes]:
        path = self._chunk_path(file_id, seq)
        with _wrap_storage_errors("read", file_id):
            try:
                async with aiofiles.open(path, "rb") as f:
                    return await f.read()
            except FileNotFoundError:
                return None

    async def delete_chunks(self, file_id: uuid.UUID) -> int:
        file_dir = self._file_dir(file_id)
        with _wrap_storage_errors("delete", file_id):
            if not await aiofiles.os.path.exists(file_dir):
                return 0
            removed = 0
            for name in await aiofiles.os.listdir(file_dir):
                await aiofiles.os.remove(file_dir / name)
                removed += 1
            await aiofiles.os.rmdir(file_dir)
            return removed

    async def count_chunks(self, file_id: Optional[uuid.UUID] = None) -> int:
        with _wrap_storage_errors("count", file_id):
            file_ids = [file_id] if file_id is not None else await self.list_file_ids()
            total = 0
            for fid in file_ids:
                file_dir = self._file_dir(fid)
                if await aiofiles.os.path.exists(file_dir):
                    names = await aiofiles.os.listdir(file_dir)
                    total += sum(1 for n in names if n.endswith(".chunk"))
            return total

    async def list_file_ids(self) -> set[uuid.UUID]:
        file_ids = set()
        with _wrap_storage_errors("list"):
            for name in await aiofiles.os.listdir(self.base_path):
                try:
                    file_ids.add(uuid.UUID(hex=name))
                except ValueError:
                    continue
        return file_ids
