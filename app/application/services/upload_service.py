import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Tuple
from fastapi import HTTPException

from ..ports.file_repo import StoredFile
from ..ports.image_repo import ImageRepository, Image, new_processing_image, new_stored_image
from ..ports.image_transformer import ImageTransformer, ImageInfo
from ..ports.job_queue import JobQueue, ResizeJob
from ..ports.notifier import Notifier
from ..ports.storage_repo import ContentStore
from ...config import settings
from ...exceptions import UnsupportedImageError
from ...schemas import ImageEvent, ImageEventType
from ...utils import KeyedLock, calculate_checksum

logger = logging.getLogger(__name__)

READY_MESSAGE = "Image is ready"


def content_lock_key(checksum: str) -> Tuple[str, str]:
    return ("content", checksum)


def variant_lock_key(original_file_id: str, width: int, height: int) -> Tuple[str, str, int, int]:
    return ("variant", original_file_id, width, height)


@dataclass
class UploadImageService:
    """Decides, per upload, whether bytes and resized variants can be reused or must be produced."""

    content_store: ContentStore
    image_repo: ImageRepository
    transformer: ImageTransformer
    job_queue: JobQueue
    notifier: Notifier
    locks: KeyedLock
    queue_topic: str = field(default_factory=lambda: settings.IMAGE_PROCESSING_QUEUE)
    max_file_size: int = field(default_factory=lambda: settings.MAX_FILE_SIZE)
    allowed_types: Tuple[str, ...] = field(default_factory=lambda: tuple(settings.ALLOWED_IMAGE_TYPES))
    title_max_length: int = field(default_factory=lambda: settings.TITLE_MAX_LENGTH)
    min_dimension: int = field(default_factory=lambda: settings.MIN_DIMENSION)
    max_dimension: int = field(default_factory=lambda: settings.MAX_DIMENSION)

    def validate(self, data: bytes, content_type: Optional[str], title: str, width: int, height: int) -> ImageInfo:
        if content_type and content_type not in self.allowed_types:
            raise HTTPException(status_code=415, detail=f"File type {content_type} not allowed")
        if not data:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")
        if self.max_file_size and len(data) > self.max_file_size:
            raise HTTPException(status_code=413, detail=f"File too large (max {self.max_file_size} bytes)")

        title = (title or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        if len(title) > self.title_max_length:
            raise HTTPException(status_code=400, detail=f"Title must be at most {self.title_max_length} characters")

        for name, value in (("width", width), ("height", height)):
            if not isinstance(value, int) or isinstance(value, bool) or not self.min_dimension <= value <= self.max_dimension:
                raise HTTPException(
                    status_code=400,
                    detail=f"{name} must be an integer between {self.min_dimension} and {self.max_dimension}",
                )

        try:
            info = self.transformer.probe(data)
        except UnsupportedImageError as e:
            raise HTTPException(status_code=415, detail=str(e))
        if info.mime_type not in self.allowed_types:
            raise HTTPException(status_code=415, detail=f"File type {info.mime_type} not allowed")
        return info

    def upload(self, data: bytes, title: str, width: int, height: int, content_type: Optional[str] = None) -> str:
        info = self.validate(data, content_type, title, width, height)
        title = title.strip()
        checksum = calculate_checksum(data)
        logger.info(f"Upload {title!r}: {info.width}x{info.height} {info.mime_type}, checksum {checksum}")

        original = self._store_original(data, checksum)
        image_id = str(uuid.uuid4())

        if (info.width, info.height) == (width, height):
            image = self.image_repo.create(new_stored_image(
                image_id=image_id,
                title=title,
                original_width=info.width,
                original_height=info.height,
                original_file_id=original.id,
                processed_file_id=original.id,
                processed_width=info.width,
                processed_height=info.height,
            ))
            logger.info(f"Image {image.id} stored without resizing ({width}x{height})")
            self._notify_ready(image.id, original.url)
            return image.id

        with self.locks.hold(variant_lock_key(original.id, width, height)):
            existing = self.image_repo.find_processed(original.id, width, height)
            if existing:
                image = self.image_repo.create(new_stored_image(
                    image_id=image_id,
                    title=title,
                    original_width=info.width,
                    original_height=info.height,
                    original_file_id=original.id,
                    processed_file_id=existing.processed_file_id,
                    processed_width=existing.processed_width,
                    processed_height=existing.processed_height,
                ))
                logger.info(f"Image {image.id} reuses processed file {existing.processed_file_id} of {existing.id}")
                self._notify_ready(image.id, self._processed_url(existing))
                return image.id

            image = self.image_repo.create(new_processing_image(
                image_id=image_id,
                title=title,
                original_width=info.width,
                original_height=info.height,
                original_file_id=original.id,
            ))
            job = ResizeJob(image_id=image.id, title=title, target_width=width, target_height=height)
            self.job_queue.enqueue(self.queue_topic, job.to_payload())
            logger.info(f"Image {image.id} queued for resize {info.width}x{info.height} -> {width}x{height}")
            return image.id

    def _store_original(self, data: bytes, checksum: str) -> StoredFile:
        with self.locks.hold(content_lock_key(checksum)):
            existing = self.content_store.find_by_checksum(checksum)
            if existing:
                logger.info(f"Reusing stored file {existing.id} for checksum {checksum}")
                return existing
            return self.content_store.put(data)

    def _processed_url(self, image: Image) -> Optional[str]:
        found = self.image_repo.get_with_files(image.id)
        if found and found.processed_file:
            return found.processed_file.url
        return None

    def _notify_ready(self, image_id: str, url: Optional[str]) -> None:
        try:
            self.notifier.publish(image_id, ImageEvent(
                type=ImageEventType.COMPLETED,
                imageId=image_id,
                message=READY_MESSAGE,
                url=url,
            ))
        except Exception as e:
            logger.error(f"Failed to send event for image {image_id}: {e}")
