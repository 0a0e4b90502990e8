"""Resource model - study material records that reference a blob by file id."""
import uuid
from sqlalchemy import String, Text, Integer, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from resourcehub.models.base import Base, TimestampMixin

RESOURCE_TYPES = ("Notes", "Assignment", "PYQ", "Lab")
RESOURCE_STATUSES = ("pending", "approved", "rejected")


class Resource(Base, TimestampMixin):
    __tablename__ = "resources"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    branch: Mapped[str] = mapped_column(String(20), nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # Plain reference, the blob store knows nothing about resources
    file_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    uploaded_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), default="pending")
    rejection_reason: Mapped[str] = mapped_column(Text, default="")
    likes_count: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        Index("idx_resources_filters", "branch", "semester", "subject", "resource_type"),
        Index("idx_resources_status", "status"),
    )

    @property
    def file_url(self) -> str:
        return f"/api/files/{self.file_id}"
