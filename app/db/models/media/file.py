# app/db/models/media/file.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, UniqueConstraint
from datetime import datetime
import uuid

from ....utils import utcnow


class StoredFileRecord(SQLModel, table=True):
    """Content-addressed blob; one row per (checksum, storage provider)."""
    __tablename__ = "files"
    __table_args__ = (
        UniqueConstraint("checksum", "storage_provider", name="uq_files_checksum_provider"),
    )
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    file_name: str = Field(max_length=255)
    file_size: int
    mime_type: str = Field(max_length=100)
    checksum: str = Field(max_length=64, index=True)
    url: str = Field(max_length=1024)
    storage_provider: str = Field(max_length=20, default="local")
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
