# Shared process-wide collaborators and per-session service builders
import logging
from typing import Optional
from sqlmodel import Session

from .config import settings
from .utils import KeyedLock
from .application.ports.job_queue import JobQueue
from .application.ports.storage_repo import BlobStorage
from .application.services.upload_service import UploadImageService
from .application.services.resize_worker import ResizeWorker
from .application.services.images_service import ImagesService
from .infrastructure.imaging.pillow_transformer import PillowImageTransformer
from .infrastructure.persistence.sqlalchemy.repositories.file_repository_sql import SqlFileRepository
from .infrastructure.persistence.sqlalchemy.repositories.image_repository_sql import SqlImageRepository
from .infrastructure.storage.content_store import ContentAddressedStore
from .services.notifications.notification_service import NotificationChannel

logger = logging.getLogger(__name__)

_channel: Optional[NotificationChannel] = None
_job_queue: Optional[JobQueue] = None
_blob_storage: Optional[BlobStorage] = None
_transformer: Optional[PillowImageTransformer] = None
_locks = KeyedLock()


def get_notification_channel() -> NotificationChannel:
    global _channel
    if _channel is None:
        _channel = NotificationChannel()
    return _channel


def get_job_queue() -> JobQueue:
    global _job_queue
    if _job_queue is None:
        _job_queue = build_job_queue()
    return _job_queue


def get_blob_storage() -> BlobStorage:
    global _blob_storage
    if _blob_storage is None:
        _blob_storage = build_blob_storage()
    return _blob_storage


def get_transformer() -> PillowImageTransformer:
    global _transformer
    if _transformer is None:
        _transformer = PillowImageTransformer()
    return _transformer


def get_locks() -> KeyedLock:
    return _locks


def build_job_queue() -> JobQueue:
    backend = settings.QUEUE_BACKEND.lower()
    if backend == "redis":
        from .infrastructure.queue.redis_queue import RedisJobQueue
        logger.info("Using Redis job queue")
        return RedisJobQueue(settings.REDIS_URL, consumer=settings.QUEUE_CONSUMER_NAME)
    if backend != "memory":
        raise ValueError(f"Unknown QUEUE_BACKEND: {settings.QUEUE_BACKEND}")
    from .infrastructure.queue.memory_queue import InMemoryJobQueue
    logger.info("Using in-memory job queue")
    return InMemoryJobQueue()


def build_blob_storage() -> BlobStorage:
    provider = settings.STORAGE_PROVIDER.lower()
    if provider == "s3":
        from .infrastructure.storage.s3_storage import S3BlobStorage
        logger.info(f"Using S3 storage bucket {settings.S3_BUCKET}")
        return S3BlobStorage()
    if provider != "local":
        raise ValueError(f"Unknown STORAGE_PROVIDER: {settings.STORAGE_PROVIDER}")
    from .infrastructure.storage.local_storage import LocalBlobStorage
    logger.info(f"Using local storage at {settings.STORAGE_BASE_PATH}")
    return LocalBlobStorage()


def build_content_store(session: Session) -> ContentAddressedStore:
    return ContentAddressedStore(
        backend=get_blob_storage(),
        file_repo=SqlFileRepository(session),
        transformer=get_transformer(),
        max_file_size=settings.MAX_FILE_SIZE,
    )


def build_upload_service(session: Session) -> UploadImageService:
    return UploadImageService(
        content_store=build_content_store(session),
        image_repo=SqlImageRepository(session),
        transformer=get_transformer(),
        job_queue=get_job_queue(),
        notifier=get_notification_channel(),
        locks=get_locks(),
    )


def build_resize_worker(session: Session) -> ResizeWorker:
    return ResizeWorker(
        image_repo=SqlImageRepository(session),
        content_store=build_content_store(session),
        transformer=get_transformer(),
        notifier=get_notification_channel(),
        locks=get_locks(),
    )


def build_images_service(session: Session) -> ImagesService:
    return ImagesService(image_repo=SqlImageRepository(session))
