"""Blob deletion.

Metadata goes first so the id stops resolving immediately; chunks follow.
A failure while deleting chunks is logged and left for the orphan sweep,
it never turns a completed metadata delete into an error.
"""
import logging
import uuid

from resourcehub.services.blob_store.errors import StorageFailure
from resourcehub.services.blob_store.handle import StorageHandle

logger = logging.getLogger(__name__)


async def delete_blob(storage: StorageHandle, file_id: uuid.UUID) -> bool:
    """Remove a file's metadata and chunks.

    Returns True if anything was removed, False if nothing was left for this
    id. Calling it again after success is a no-op that returns False.
    """
    had_metadata = await storage.index.delete(file_id)

    removed_chunks = 0
    try:
        removed_chunks = await storage.chunks.delete_chunks(file_id)
    except StorageFailure as e:
        logger.error(
            "Deleted metadata of %s but its chunks could not be removed (left for orphan sweep): %s",
            file_id, e,
        )

    if had_metadata or removed_chunks:
        logger.info("Deleted file %s (%d chunk(s))", file_id, removed_chunks)
        return True
    logger.debug("File %s already gone", file_id)
    return False
