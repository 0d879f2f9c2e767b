import io
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from PIL import Image as PILImage

from app.application.ports.file_repo import StoredFile
from app.application.ports.image_repo import Image, ImageStatus, ImageWithFiles, NewImage, PaginatedResult
from app.exceptions import ImageNotFoundError, StorageError, StorageErrorCode
from app.utils import calculate_checksum


def make_image(width: int, height: int, color=(200, 30, 30), fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    PILImage.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


class FakeContentStore:
    provider = "memory"

    def __init__(self):
        self._lock = threading.Lock()
        self.files: Dict[str, StoredFile] = {}
        self.blobs: Dict[str, bytes] = {}
        self.writes = 0
        self.fail_put = False
        self.fail_get = False

    def find_by_checksum(self, checksum: str) -> Optional[StoredFile]:
        with self._lock:
            return next((f for f in self.files.values() if f.checksum == checksum), None)

    def put(self, data: bytes) -> StoredFile:
        if self.fail_put:
            raise StorageError("storage unavailable", StorageErrorCode.UPLOAD_FAILED)
        checksum = calculate_checksum(data)
        with self._lock:
            existing = next((f for f in self.files.values() if f.checksum == checksum), None)
            if existing:
                return existing
            self.writes += 1
            now = datetime.now(timezone.utc)
            f = StoredFile(
                id=str(uuid.uuid4()),
                file_name=f"{checksum}.png",
                file_size=len(data),
                mime_type="image/png",
                checksum=checksum,
                url=f"memory://{checksum}",
                storage_provider=self.provider,
                created_at=now,
                updated_at=now,
            )
            self.files[f.id] = f
            self.blobs[f.url] = data
            return f

    def get(self, url: str) -> bytes:
        if self.fail_get or url not in self.blobs:
            raise StorageError(f"File not found: {url}", StorageErrorCode.FILE_NOT_FOUND)
        return self.blobs[url]


class FakeImageRepo:
    def __init__(self, store: FakeContentStore):
        self._lock = threading.Lock()
        self.store = store
        self.images: Dict[str, Image] = {}
        self.fail_create = False
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def create(self, new_image: NewImage) -> Image:
        if self.fail_create:
            raise RuntimeError("database unavailable")
        with self._lock:
            self._clock += timedelta(seconds=1)
            image = Image(
                id=new_image.id,
                title=new_image.title,
                original_width=new_image.original_width,
                original_height=new_image.original_height,
                processed_width=new_image.processed_width,
                processed_height=new_image.processed_height,
                original_file_id=new_image.original_file_id,
                processed_file_id=new_image.processed_file_id,
                status=new_image.status,
                created_at=self._clock,
                updated_at=self._clock,
            )
            self.images[image.id] = image
            return image

    def get(self, image_id: str) -> Optional[Image]:
        return self.images.get(image_id)

    def get_with_files(self, image_id: str) -> Optional[ImageWithFiles]:
        image = self.images.get(image_id)
        if not image:
            return None
        processed = self.store.files.get(image.processed_file_id) if image.processed_file_id else None
        return ImageWithFiles(image=image, original_file=self.store.files[image.original_file_id], processed_file=processed)

    def find_processed(self, original_file_id: str, width: int, height: int) -> Optional[Image]:
        with self._lock:
            return next(
                (i for i in self.images.values()
                 if i.original_file_id == original_file_id
                 and i.processed_width == width and i.processed_height == height
                 and i.status is ImageStatus.STORED and i.processed_file_id),
                None,
            )

    def update_processing_result(self, image_id, status, processed_file_id=None, processed_width=None, processed_height=None) -> Optional[Image]:
        with self._lock:
            image = self.images.get(image_id)
            if not image:
                raise ImageNotFoundError(image_id)
            if image.status is not ImageStatus.PROCESSING:
                return None
            image.status = status
            if processed_file_id is not None:
                image.processed_file_id = processed_file_id
                image.processed_width = processed_width
                image.processed_height = processed_height
            return image

    def list(self, cursor, direction, limit, title) -> PaginatedResult[ImageWithFiles]:
        items = sorted(self.images.values(), key=lambda i: i.created_at, reverse=True)
        return PaginatedResult(items=[self.get_with_files(i.id) for i in items[:limit]],
                               has_next=len(items) > limit, has_prev=False)

    def by_status(self, status: ImageStatus) -> List[Image]:
        return [i for i in self.images.values() if i.status is status]


class FakeQueue:
    def __init__(self):
        self._lock = threading.Lock()
        self.jobs = []

    def enqueue(self, topic, payload):
        with self._lock:
            self.jobs.append((topic, payload))

    def dequeue(self, topic, timeout):
        return None

    def ack(self, delivery):
        pass

    def requeue_unacked(self, topic):
        return 0


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self._lock = threading.Lock()
        self.events = []
        self.fail = fail

    def publish(self, image_id, event) -> int:
        if self.fail:
            raise ConnectionError("client went away")
        with self._lock:
            self.events.append((image_id, event))
        return 1

    def for_image(self, image_id):
        return [e for i, e in self.events if i == image_id]


class RecordingConnection:
    def __init__(self, fail_send: bool = False):
        self.sent: List[str] = []
        self.closed = False
        self.fail_send = fail_send

    def send(self, payload: str) -> None:
        if self.fail_send:
            raise ConnectionError("broken pipe")
        self.sent.append(payload)

    def close(self) -> None:
        self.closed = True
