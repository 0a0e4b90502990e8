"""Resource catalog helpers shared by the resource and admin routes."""
import logging
from typing import Iterable

from sqlalchemy import delete as sql_delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from resourcehub.models.resource import Resource
from resourcehub.models.user import resource_bookmarks, resource_likes
from resourcehub.services.blob_store import BlobStoreError, StorageHandle, delete_blob

logger = logging.getLogger(__name__)


async def delete_resources(
    db: AsyncSession, storage: StorageHandle, resources: Iterable[Resource]
) -> int:
    """Delete resource records, their likes/bookmarks, then their blobs.

    Records are committed first; blob removal is best-effort afterwards so a
    storage outage never leaves a record pointing at a deleted file. Returns
    the number of blobs that could not be removed.
    """
    resources = list(resources)
    if not resources:
        return 0
    resource_ids = [r.id for r in resources]
    file_ids = [r.file_id for r in resources]

    await db.execute(sql_delete(resource_likes).where(resource_likes.c.resource_id.in_(resource_ids)))
    await db.execute(sql_delete(resource_bookmarks).where(resource_bookmarks.c.resource_id.in_(resource_ids)))
    for resource in resources:
        await db.delete(resource)
    await db.commit()

    failures = 0
    for file_id in file_ids:
        try:
            await delete_blob(storage, file_id)
        except BlobStoreError as e:
            failures += 1
            logger.error("Resource deleted but its file %s could not be removed: %s", file_id, e)
    return failures


async def forget_user_reactions(db: AsyncSession, user_id) -> None:
    """Drop a user's likes (decrementing counters) and bookmarks."""
    liked = await db.execute(
        resource_likes.select().where(resource_likes.c.user_id == user_id)
    )
    liked_ids = [row.resource_id for row in liked]
    if liked_ids:
        await db.execute(
            update(Resource)
            .where(Resource.id.in_(liked_ids), Resource.likes_count > 0)
            .values(likes_count=Resource.likes_count - 1)
        )
    await db.execute(sql_delete(resource_likes).where(resource_likes.c.user_id == user_id))
    await db.execute(sql_delete(resource_bookmarks).where(resource_bookmarks.c.user_id == user_id))
