"""File request/response schemas."""
import uuid
from typing import Optional
from datetime import datetime
from pydantic import computed_field
from resourcehub.schemas.base import CamelORMModel


class FileInfoResponse(CamelORMModel):
    file_id: uuid.UUID
    stored_name: str
    original_name: str
    content_type: str
    size_bytes: int
    chunk_size_bytes: int
    uploaded_at: datetime
    custom_metadata: Optional[dict] = None

    @computed_field
    @property
    def size_mb(self) -> str:
        return f"{self.size_bytes / (1024 * 1024):.2f}"

    @computed_field
    @property
    def url(self) -> str:
        return f"/api/files/{self.file_id}"
