"""Shared Pydantic schemas."""
from pydantic import BaseModel

from resourcehub.schemas.base import CamelModel


class DeleteResponse(BaseModel):
    deleted: bool = True
    id: str = ""


class StatusCounts(CamelModel):
    total_users: int
    total_uploads: int
    pending_approvals: int
    approved_resources: int
    rejected_resources: int
