import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from fastapi import HTTPException

from ..ports.image_repo import ImageRepository, ImageWithFiles
from ...config import settings
from ...exceptions import InvalidCursorError
from ...schemas import ImageResponse, PaginatedImageResponse
from ...utils import as_utc

logger = logging.getLogger(__name__)

DIRECTIONS = ("next", "prev")


def encode_cursor(created_at: datetime) -> str:
    return base64.b64encode(created_at.isoformat().encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> datetime:
    try:
        raw = base64.b64decode(cursor.encode("ascii"), validate=True).decode("utf-8")
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidCursorError(f"Invalid cursor format: {cursor}") from e
    return as_utc(value)


def to_image_response(record: ImageWithFiles) -> ImageResponse:
    image = record.image
    url = record.processed_file.url if record.processed_file else record.original_file.url
    return ImageResponse(
        id=image.id,
        url=url,
        title=image.title,
        width=image.processed_width if image.processed_width is not None else image.original_width,
        height=image.processed_height if image.processed_height is not None else image.original_height,
        status=image.status.value.lower(),
        createdAt=image.created_at,
    )


@dataclass
class ImagesService:
    image_repo: ImageRepository
    default_page_size: int = field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE)
    max_page_size: int = field(default_factory=lambda: settings.MAX_PAGE_SIZE)

    def get_record(self, image_id: str) -> ImageWithFiles:
        record = self.image_repo.get_with_files(image_id)
        if not record:
            raise HTTPException(status_code=404, detail=f"Image with ID {image_id} not found")
        return record

    def get_image(self, image_id: str) -> ImageResponse:
        return to_image_response(self.get_record(image_id))

    def list_images(self, title: Optional[str] = None, cursor: Optional[str] = None,
                    direction: str = "next", limit: Optional[int] = None) -> PaginatedImageResponse:
        if direction not in DIRECTIONS:
            raise HTTPException(status_code=400, detail="direction must be 'next' or 'prev'")
        limit = self.default_page_size if limit is None else limit
        if not 1 <= limit <= self.max_page_size:
            raise HTTPException(status_code=400, detail=f"limit must be between 1 and {self.max_page_size}")

        try:
            cursor_at = decode_cursor(cursor) if cursor else None
        except InvalidCursorError as e:
            raise HTTPException(status_code=400, detail=str(e))

        result = self.image_repo.list(cursor_at, direction, limit, title or None)
        data = [to_image_response(r) for r in result.items]

        next_cursor = encode_cursor(data[-1].createdAt) if result.has_next and data else None
        prev_cursor = encode_cursor(data[0].createdAt) if result.has_prev and data else None

        return PaginatedImageResponse(
            data=data,
            nextCursor=next_cursor,
            prevCursor=prev_cursor,
            count=len(data),
            hasNext=result.has_next,
            hasPrev=result.has_prev,
        )
