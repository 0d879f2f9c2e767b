from enum import Enum
from typing import Generic, List, Optional, TypeVar
from dataclasses import dataclass
from datetime import datetime

from .file_repo import StoredFile


class ImageStatus(Enum):
    PROCESSING = "PROCESSING"
    STORED = "STORED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not ImageStatus.PROCESSING


@dataclass
class Image:
    id: str
    title: str
    original_width: int
    original_height: int
    processed_width: Optional[int]
    processed_height: Optional[int]
    original_file_id: str
    processed_file_id: Optional[str]
    status: ImageStatus
    created_at: datetime
    updated_at: datetime


@dataclass
class ImageWithFiles:
    image: Image
    original_file: StoredFile
    processed_file: Optional[StoredFile] = None


@dataclass(frozen=True)
class NewImage:
    """Creation payload; build it with new_stored_image or new_processing_image."""
    id: str
    title: str
    original_width: int
    original_height: int
    original_file_id: str
    status: ImageStatus
    processed_width: Optional[int] = None
    processed_height: Optional[int] = None
    processed_file_id: Optional[str] = None


def new_stored_image(image_id: str, title: str, original_width: int, original_height: int, original_file_id: str,
                     processed_file_id: str, processed_width: int, processed_height: int) -> NewImage:
    return NewImage(
        id=image_id,
        title=title,
        original_width=original_width,
        original_height=original_height,
        original_file_id=original_file_id,
        status=ImageStatus.STORED,
        processed_width=processed_width,
        processed_height=processed_height,
        processed_file_id=processed_file_id,
    )


def new_processing_image(image_id: str, title: str, original_width: int, original_height: int, original_file_id: str) -> NewImage:
    return NewImage(
        id=image_id,
        title=title,
        original_width=original_width,
        original_height=original_height,
        original_file_id=original_file_id,
        status=ImageStatus.PROCESSING,
    )


T = TypeVar("T")


@dataclass
class PaginatedResult(Generic[T]):
    items: List[T]
    has_next: bool
    has_prev: bool


class ImageRepository:
    def create(self, new_image: NewImage) -> Image:
        ...

    def get(self, image_id: str) -> Optional[Image]:
        ...

    def get_with_files(self, image_id: str) -> Optional[ImageWithFiles]:
        ...

    def find_processed(self, original_file_id: str, width: int, height: int) -> Optional[Image]:
        """A STORED image of this original already resized to exactly width x height."""
        ...

    def update_processing_result(self, image_id: str, status: ImageStatus, processed_file_id: Optional[str] = None,
                                 processed_width: Optional[int] = None, processed_height: Optional[int] = None) -> Optional[Image]:
        """Move a PROCESSING image to a terminal status; None when it had already left PROCESSING."""
        ...

    def list(self, cursor: Optional[datetime], direction: str, limit: int, title: Optional[str]) -> PaginatedResult[ImageWithFiles]:
        ...
