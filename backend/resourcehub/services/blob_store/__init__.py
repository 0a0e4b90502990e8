"""Chunked blob store: chunk storage, metadata index and the upload/download/delete pipelines."""
from resourcehub.services.blob_store.errors import (
    BlobStoreError,
    BlobNotFound,
    CorruptedFile,
    InvalidFileType,
    RangeNotSatisfiable,
    SizeExceeded,
    StorageFailure,
)
from resourcehub.services.blob_store.chunk_store import ChunkStore, LocalChunkStore, SqlChunkStore
from resourcehub.services.blob_store.metadata_index import FileMetadata, MetadataIndex, SqlMetadataIndex
from resourcehub.services.blob_store.handle import BlobStoreConfig, StorageHandle, build_storage_handle
from resourcehub.services.blob_store.upload import upload_blob
from resourcehub.services.blob_store.download import BlobDownload, open_download, parse_range_header
from resourcehub.services.blob_store.deletion import delete_blob

__all__ = [
    "BlobStoreError", "BlobNotFound", "CorruptedFile", "InvalidFileType",
    "RangeNotSatisfiable", "SizeExceeded", "StorageFailure",
    "ChunkStore", "LocalChunkStore", "SqlChunkStore",
    "FileMetadata", "MetadataIndex", "SqlMetadataIndex",
    "BlobStoreConfig", "StorageHandle", "build_storage_handle",
    "upload_blob", "BlobDownload", "open_download", "parse_range_header",
    "delete_blob",
]
