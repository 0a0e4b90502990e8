"""Startup sweeps and storage statistics for the blob store."""
import logging
from datetime import datetime, timedelta, timezone

from resourcehub.services.blob_store.errors import StorageFailure
from resourcehub.services.blob_store.handle import StorageHandle
from resourcehub.services.blob_store.metadata_index import STATUS_COMMITTED, STATUS_PENDING

logger = logging.getLogger(__name__)


async def purge_stale_uploads(storage: StorageHandle, stale_minutes: int = 30) -> int:
    """Remove uploads stuck in 'pending' for longer than `stale_minutes`.

    These are left behind when the process dies between chunk writes and
    commit. Call on startup.
    """
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=stale_minutes)
    stale_ids = await storage.index.list_stale_pending(cutoff)
    purged = 0
    for file_id in stale_ids:
        try:
            removed = await storage.chunks.delete_chunks(file_id)
            await storage.index.delete(file_id)
        except StorageFailure as e:
            logger.error(f"Could not purge stale upload {file_id}: {e}")
            continue
        purged += 1
        logger.warning(f"Purged stale upload {file_id} ({removed} chunk(s))")
    if purged:
        logger.info(f"Purged {purged} stale upload(s)")
    return purged


async def purge_orphan_chunks(storage: StorageHandle) -> int:
    """Delete chunk sets whose metadata row no longer exists.

    Chunk ids are listed before metadata ids so an upload that starts in
    between (pending row written first) is never mistaken for an orphan.
    """
    chunk_ids = await storage.chunks.list_file_ids()
    known_ids = await storage.index.list_file_ids()
    purged = 0
    for file_id in chunk_ids - known_ids:
        try:
            removed = await storage.chunks.delete_chunks(file_id)
        except StorageFailure as e:
            logger.error(f"Could not purge orphan chunks of {file_id}: {e}")
            continue
        purged += 1
        logger.warning(f"Purged {removed} orphan chunk(s) of {file_id}")
    return purged


async def storage_stats(storage: StorageHandle) -> dict:
    """Counts for the health endpoint."""
    return {
        "committed_files": await storage.index.count(STATUS_COMMITTED),
        "pending_files": await storage.index.count(STATUS_PENDING),
        "chunks": await storage.chunks.count_chunks(),
        "chunk_size_bytes": storage.config.chunk_size_bytes,
        "max_size_bytes": storage.config.max_size_bytes,
    }
