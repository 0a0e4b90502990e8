"""Resource request/response schemas."""
import uuid
from typing import Optional
from datetime import datetime
from resourcehub.schemas.base import CamelModel, CamelORMModel
from resourcehub.schemas.user import UserSummary


class ResourceReject(CamelModel):
    reason: Optional[str] = None


class ResourceResponse(CamelORMModel):
    id: uuid.UUID
    title: str
    description: str
    branch: str
    semester: int
    subject: str
    type: str
    file_id: uuid.UUID
    file_url: str
    file_name: str
    uploaded_by: uuid.UUID
    uploader: Optional[UserSummary] = None
    status: str
    rejection_reason: str = ""
    likes_count: int = 0
    created_at: datetime
    updated_at: datetime


class ResourcePage(CamelModel):
    count: int
    total: int
    page: int
    total_pages: int
    resources: list[ResourceResponse]


class ResourceList(CamelModel):
    count: int
    resources: list[ResourceResponse]


class ToggleResponse(CamelModel):
    message: str
    liked: Optional[bool] = None
    bookmarked: Optional[bool] = None
    likes_count: Optional[int] = None
