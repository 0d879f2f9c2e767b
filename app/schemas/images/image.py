# app/schemas/images/image.py
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional


class UploadResponse(BaseModel):
    id: str


class ImageResponse(BaseModel):
    id: str
    url: str
    title: str
    width: int
    height: int
    status: str  # 'processing' | 'stored' | 'failed'
    createdAt: datetime


class PaginatedImageResponse(BaseModel):
    data: List[ImageResponse]
    nextCursor: Optional[str] = None
    prevCursor: Optional[str] = None
    count: int
    hasNext: bool
    hasPrev: bool


class ImageEventType(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class ImageEvent(BaseModel):
    type: ImageEventType
    imageId: str
    message: str = Field(min_length=1)
    url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        # both event types end the stream
        return self.type in (ImageEventType.COMPLETED, ImageEventType.FAILED)

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)
