"""File metadata index.

Rows are written as "pending" before the first chunk and flipped to
"committed" once every chunk is stored. resolve() only ever returns
committed rows, so a half-written upload is never visible.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from resourcehub.models.blob_file import BlobFile
from resourcehub.services.blob_store.errors import BlobNotFound, StorageFailure

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_COMMITTED = "committed"


@dataclass(frozen=True)
class FileMetadata:
    file_id: uuid.UUID
    stored_name: str
    original_name: str
    content_type: str
    size_bytes: int
    chunk_size_bytes: int
    uploaded_at: datetime
    custom_metadata: dict[str, Any] = field(default_factory=dict)
    status: str = STATUS_COMMITTED

    @property
    def chunk_count(self) -> int:
        """Number of chunks a committed file of this size must have."""
        return -(-self.size_bytes // self.chunk_size_bytes)

    @classmethod
    def from_row(cls, row: BlobFile) -> "FileMetadata":
        return cls(
            file_id=row.id,
            stored_name=row.stored_name,
            original_name=row.original_name,
            content_type=row.content_type,
            size_bytes=row.size_bytes,
            chunk_size_bytes=row.chunk_size_bytes,
            uploaded_at=row.uploaded_at,
            custom_metadata=dict(row.custom_metadata or {}),
            status=row.status,
        )


@dataclass(frozen=True)
class DeclaredMetadata:
    """What the caller tells the index when an upload starts."""
    stored_name: str
    original_name: str
    content_type: str
    chunk_size_bytes: int
    custom_metadata: dict[str, Any] = field(default_factory=dict)


class MetadataIndex(ABC):
    """Maps a file id to its descriptive attributes."""

    @abstractmethod
    async def create_pending(self, file_id: uuid.UUID, declared: DeclaredMetadata) -> FileMetadata:
        """Insert an unresolvable record for an upload that is starting."""

    @abstractmethod
    async def commit(self, file_id: uuid.UUID, size_bytes: int) -> FileMetadata:
        """Finalize size and make the record resolvable."""

    @abstractmethod
    async def resolve(self, file_id: uuid.UUID) -> FileMetadata:
        """Return committed metadata or raise BlobNotFound."""

    @abstractmethod
    async def delete(self, file_id: uuid.UUID) -> bool:
        """Remove the record in any state. False if it was already gone."""

    @abstractmethod
    async def list_stale_pending(self, older_than: datetime) -> list[uuid.UUID]:
        """Ids of pending records created before the cutoff."""

    @abstractmethod
    async def list_file_ids(self) -> set[uuid.UUID]:
        """Ids of every record, pending or committed."""

    @abstractmethod
    async def count(self, status: Optional[str] = None) -> int:
        """Count records, optionally by status."""


class SqlMetadataIndex(MetadataIndex):
    """Metadata rows in the blob_files table."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def create_pending(self, file_id: uuid.UUID, declared: DeclaredMetadata) -> FileMetadata:
        row = BlobFile(
            id=file_id,
            stored_name=declared.stored_name,
            original_name=declared.original_name,
            content_type=declared.content_type,
            size_bytes=0,
            chunk_size_bytes=declared.chunk_size_bytes,
            custom_metadata=dict(declared.custom_metadata),
            status=STATUS_PENDING,
            uploaded_at=datetime.now(timezone.utc),
        )
        try:
            async with self._session_factory() as db:
                db.add(row)
                metadata = FileMetadata.from_row(row)
                await db.commit()
                return metadata
        except SQLAlchemyError as e:
            raise StorageFailure("Could not create file metadata", file_id=file_id) from e

    async def commit(self, file_id: uuid.UUID, size_bytes: int) -> FileMetadata:
        try:
            async with self._session_factory() as db:
                row = await db.get(BlobFile, file_id)
                if row is None or row.status != STATUS_PENDING:
                    raise BlobNotFound(f"No pending upload {file_id}", file_id=file_id)
                row.size_bytes = size_bytes
                row.status = STATUS_COMMITTED
                row.committed_at = datetime.now(timezone.utc)
                metadata = FileMetadata.from_row(row)
                await db.commit()
                logger.debug("Committed file %s (%d bytes)", file_id, size_bytes)
                return metadata
        except SQLAlchemyError as e:
            raise StorageFailure("Could not commit file metadata", file_id=file_id) from e

    async def resolve(self, file_id: uuid.UUID) -> FileMetadata:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(BlobFile).where(
                        BlobFile.id == file_id, BlobFile.status == STATUS_COMMITTED
                    )
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageFailure("Could not read file metadata", file_id=file_id) from e
        if row is None:
            raise BlobNotFound(f"File {file_id} not found", file_id=file_id)
        return FileMetadata.from_row(row)

    async def delete(self, file_id: uuid.UUID) -> bool:
        try:
            async with self._session_factory() as db:
                result = await db.execute(delete(BlobFile).where(BlobFile.id == file_id))
                await db.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise StorageFailure("Could not delete file metadata", file_id=file_id) from e

    async def list_stale_pending(self, older_than: datetime) -> list[uuid.UUID]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(BlobFile.id).where(
                        BlobFile.status == STATUS_PENDING,
                        BlobFile.uploaded_at < older_than,
                    )
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageFailure("Could not list pending uploads") from e

    async def list_file_ids(self) -> set[uuid.UUID]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(BlobFile.id))
                return set(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageFailure("Could not list file metadata") from e

    async def count(self, status: Optional[str] = None) -> int:
        try:
            async with self._session_factory() as db:
                query = select(func.count()).select_from(BlobFile)
                if status is not None:
                    query = query.where(BlobFile.status == status)
                return (await db.execute(query)).scalar_one()
        except SQLAlchemyError as e:
            raise StorageFailure("Could not count file metadata") from e
