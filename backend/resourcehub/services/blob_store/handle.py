"""Storage handle: the chunk store, metadata index and limits every pipeline call receives."""
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.ext.asyncio import async_sessionmaker

from resourcehub.services.blob_store.chunk_store import ChunkStore, LocalChunkStore, SqlChunkStore
from resourcehub.services.blob_store.metadata_index import MetadataIndex, SqlMetadataIndex

DEFAULT_CONTENT_TYPE = "application/pdf"
# Values browsers send when they do not know the type; treated as "not declared"
GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


def _split_csv(value: str) -> frozenset[str]:
    return frozenset(v.strip().lower() for v in value.split(",") if v.strip())


@dataclass(frozen=True)
class BlobStoreConfig:
    max_size_bytes: int = 10 * 1024 * 1024
    allowed_extensions: frozenset[str] = field(default_factory=lambda: frozenset({".pdf"}))
    allowed_content_types: frozenset[str] = field(default_factory=lambda: frozenset({DEFAULT_CONTENT_TYPE}))
    chunk_size_bytes: int = 255 * 1024

    def __post_init__(self):
        if self.chunk_size_bytes <= 0:
            raise ValueError("chunk_size_bytes must be positive")
        if self.max_size_bytes < 0:
            raise ValueError("max_size_bytes must not be negative")

    @classmethod
    def from_settings(cls, settings) -> "BlobStoreConfig":
        extensions = {
            ext if ext.startswith(".") else f".{ext}"
            for ext in _split_csv(settings.ALLOWED_EXTENSIONS)
        }
        return cls(
            max_size_bytes=settings.MAX_UPLOAD_SIZE_BYTES,
            allowed_extensions=frozenset(extensions),
            allowed_content_types=_split_csv(settings.ALLOWED_CONTENT_TYPES),
            chunk_size_bytes=settings.CHUNK_SIZE_BYTES,
        )


@dataclass
class StorageHandle:
    chunks: ChunkStore
    index: MetadataIndex
    config: BlobStoreConfig


def build_storage_handle(settings, session_factory: async_sessionmaker) -> StorageHandle:
    """Build the handle for the configured FILE_STORAGE_TYPE."""
    if settings.FILE_STORAGE_TYPE == "database":
        chunks: ChunkStore = SqlChunkStore(session_factory)
    elif settings.FILE_STORAGE_TYPE == "local":
        chunks = LocalChunkStore(Path(settings.FILE_STORAGE_PATH))
    else:
        raise ValueError(f"Unknown storage type: {settings.FILE_STORAGE_TYPE}")

    return StorageHandle(
        chunks=chunks,
        index=SqlMetadataIndex(session_factory),
        config=BlobStoreConfig.from_settings(settings),
    )
