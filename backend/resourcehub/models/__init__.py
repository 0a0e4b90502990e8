"""Import all models so SQLAlchemy metadata knows about them."""
from resourcehub.models.base import Base
from resourcehub.models.blob_file import BlobFile
from resourcehub.models.blob_chunk import BlobChunk
from resourcehub.models.user import User, resource_likes, resource_bookmarks
from resourcehub.models.resource import Resource

__all__ = [
    "Base",
    "BlobFile", "BlobChunk", "User", "Resource",
    "resource_likes", "resource_bookmarks",
]
