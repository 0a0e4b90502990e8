"""Blob store exception hierarchy.

Each error carries the HTTP status the files/resources routes answer with,
so the FastAPI exception handler in main.py needs no per-class mapping.
"""


class BlobStoreError(Exception):
    """Base class for every blob store failure."""

    status_code = 500

    def __init__(self, message: str, file_id=None):
        super().__init__(message)
        self.message = message
        self.file_id = file_id


class InvalidFileType(BlobStoreError):
    """Extension or content type is not on the allow-list. Nothing was written."""

    status_code = 400


class SizeExceeded(BlobStoreError):
    """Upload grew past the configured cap. Partial data was rolled back."""

    status_code = 413


class BlobNotFound(BlobStoreError):
    """No committed metadata (or no chunk) exists for the id."""

    status_code = 404


class CorruptedFile(BlobStoreError):
    """Metadata is committed but chunk data is missing or short."""

    status_code = 500


class StorageFailure(BlobStoreError):
    """Underlying database or filesystem I/O failed."""

    status_code = 503


class RangeNotSatisfiable(BlobStoreError):
    """Requested byte range lies outside the stored file."""

    status_code = 416

    def __init__(self, message: str, file_id=None, size_bytes: int = 0):
        super().__init__(message, file_id)
        self.size_bytes = size_bytes
