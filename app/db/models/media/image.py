# app/db/models/media/image.py
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, Index
from datetime import datetime
import uuid

from ....utils import utcnow


class ImageRecord(SQLModel, table=True):
    __tablename__ = "images"
    __table_args__ = (
        Index("ix_images_original_processed_dims", "original_file_id", "processed_width", "processed_height"),
    )
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    title: str = Field(max_length=255)
    original_width: int
    original_height: int
    processed_width: Optional[int] = None
    processed_height: Optional[int] = None
    original_file_id: str = Field(foreign_key="files.id")
    processed_file_id: Optional[str] = Field(foreign_key="files.id", default=None)
    status: str = Field(max_length=20, default="PROCESSING")
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
