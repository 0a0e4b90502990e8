"""BlobChunk model - fixed-size binary fragments keyed by (file_id, seq)."""
import uuid
from sqlalchemy import Integer, LargeBinary
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from resourcehub.models.base import Base


class BlobChunk(Base):
    __tablename__ = "blob_chunks"

    # No FK to blob_files: chunks are written before their metadata is committed
    file_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, primary_key=True)
    payload: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
