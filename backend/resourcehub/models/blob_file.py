"""BlobFile model - metadata index row for a chunked blob (payload lives in blob_chunks)."""
import uuid
from datetime import datetime
from sqlalchemy import String, BigInteger, Integer, JSON, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from resourcehub.models.base import Base


class BlobFile(Base):
    __tablename__ = "blob_files"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    stored_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    original_name: Mapped[str] = mapped_column(String(500), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False, default="application/pdf")
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    chunk_size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    custom_metadata: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    committed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_blob_files_status_uploaded", "status", "uploaded_at"),
    )
