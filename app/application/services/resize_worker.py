import logging
from dataclasses import dataclass
from typing import Optional

from ..ports.image_repo import ImageRepository, ImageStatus
from ..ports.image_transformer import ImageTransformer
from ..ports.job_queue import ResizeJob
from ..ports.notifier import Notifier
from ..ports.storage_repo import ContentStore
from ...exceptions import ImageNotFoundError
from ...schemas import ImageEvent, ImageEventType
from ...utils import KeyedLock
from .upload_service import variant_lock_key

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Image processed successfully"
DEFAULT_FAILURE_MESSAGE = "Image processing failed"


@dataclass
class ProcessingResult:
    processed_file_id: str
    processed_width: int
    processed_height: int
    url: str


@dataclass
class ResizeWorker:
    image_repo: ImageRepository
    content_store: ContentStore
    transformer: ImageTransformer
    notifier: Notifier
    locks: KeyedLock

    def handle(self, job: Optional[ResizeJob]) -> None:
        """Run one delivery to a terminal state. Never raises."""
        if job is None:
            logger.error("Job failed without job data")
            return
        try:
            result = self.process(job)
            if result is not None:
                self.on_completed(job, result)
        except Exception as e:
            self.on_failed(job, e)

    def process(self, job: ResizeJob) -> Optional[ProcessingResult]:
        """Resize the original of job.image_id; None when the image already reached a terminal state."""
        record = self.image_repo.get_with_files(job.image_id)
        if not record:
            raise ImageNotFoundError(job.image_id)
        image = record.image
        if image.status.is_terminal:
            logger.info(f"Image {image.id} already {image.status.value}, skipping redelivered job")
            return None

        if job.target_width and job.target_height:
            with self.locks.hold(variant_lock_key(image.original_file_id, job.target_width, job.target_height)):
                reused = self._reuse_processed(image.original_file_id, job.target_width, job.target_height)
                if reused:
                    logger.info(f"Image {image.id} reuses processed file {reused.processed_file_id}")
                    return reused
                return self._resize(job, record.original_file.url)
        return self._resize(job, record.original_file.url)

    def _reuse_processed(self, original_file_id: str, width: int, height: int) -> Optional[ProcessingResult]:
        existing = self.image_repo.find_processed(original_file_id, width, height)
        if not existing:
            return None
        found = self.image_repo.get_with_files(existing.id)
        if not found or not found.processed_file:
            return None
        return ProcessingResult(
            processed_file_id=found.processed_file.id,
            processed_width=existing.processed_width,
            processed_height=existing.processed_height,
            url=found.processed_file.url,
        )

    def _resize(self, job: ResizeJob, original_url: str) -> ProcessingResult:
        logger.info(f"Processing image {job.image_id} ({job.title!r}) -> {job.target_width}x{job.target_height}")
        data = self.content_store.get(original_url)
        logger.debug(f"Fetched original for image {job.image_id} ({len(data)} bytes)")
        processed = self.transformer.resize(data, job.target_width, job.target_height)
        stored = self.content_store.put(processed.data)
        logger.info(f"Image {job.image_id} resized to {processed.width}x{processed.height}, stored as file {stored.id}")
        return ProcessingResult(
            processed_file_id=stored.id,
            processed_width=processed.width,
            processed_height=processed.height,
            url=stored.url,
        )

    def on_completed(self, job: ResizeJob, result: ProcessingResult) -> None:
        updated = self.image_repo.update_processing_result(
            job.image_id,
            ImageStatus.STORED,
            processed_file_id=result.processed_file_id,
            processed_width=result.processed_width,
            processed_height=result.processed_height,
        )
        if updated is None:
            logger.info(f"Image {job.image_id} reached a terminal state elsewhere, not announcing completion")
            return
        logger.info(f"Image {job.image_id} processed: {result.processed_width}x{result.processed_height}")
        self._notify(ImageEvent(
            type=ImageEventType.COMPLETED,
            imageId=job.image_id,
            message=SUCCESS_MESSAGE,
            url=result.url,
        ))

    def on_failed(self, job: ResizeJob, error: BaseException) -> None:
        logger.error(f"Failed to process image {job.image_id}: {error}", exc_info=error)
        try:
            updated = self.image_repo.update_processing_result(job.image_id, ImageStatus.FAILED)
        except Exception as e:
            logger.error(f"Could not mark image {job.image_id} as failed: {e}")
        else:
            if updated is None:
                logger.info(f"Image {job.image_id} reached a terminal state elsewhere, keeping it")
                return
        self._notify(ImageEvent(
            type=ImageEventType.FAILED,
            imageId=job.image_id,
            message=str(error) or DEFAULT_FAILURE_MESSAGE,
        ))

    def _notify(self, event: ImageEvent) -> None:
        try:
            self.notifier.publish(event.imageId, event)
        except Exception as e:
            logger.error(f"Failed to send event for image {event.imageId}: {e}")
