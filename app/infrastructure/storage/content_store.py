import logging
import uuid
from typing import Optional

from ...application.ports.file_repo import FileRepository, StoredFile
from ...application.ports.image_transformer import ImageTransformer
from ...application.ports.storage_repo import BlobStorage
from ...exceptions import DuplicateFileError, StorageError, StorageErrorCode, UnsupportedImageError
from ...utils import calculate_checksum

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


class ContentAddressedStore:
    """Stores each distinct byte sequence once per provider, keyed by its SHA-256."""

    def __init__(self, backend: BlobStorage, file_repo: FileRepository, transformer: ImageTransformer,
                 max_file_size: int = 0) -> None:
        self.backend = backend
        self.file_repo = file_repo
        self.transformer = transformer
        self.max_file_size = max_file_size

    @property
    def provider(self) -> str:
        return self.backend.provider

    def find_by_checksum(self, checksum: str) -> Optional[StoredFile]:
        return self.file_repo.find_by_checksum(checksum, self.provider)

    def put(self, data: bytes) -> StoredFile:
        if self.max_file_size and len(data) > self.max_file_size:
            raise StorageError(
                f"File size {len(data)} exceeds limit of {self.max_file_size} bytes",
                StorageErrorCode.FILE_TOO_LARGE,
            )

        checksum = calculate_checksum(data)
        existing = self.find_by_checksum(checksum)
        if existing:
            logger.info(f"Reusing stored file {existing.id} for checksum {checksum}")
            return existing

        try:
            mime_type = self.transformer.probe(data).mime_type
        except UnsupportedImageError as e:
            raise StorageError(str(e), StorageErrorCode.UNSUPPORTED_FILE_TYPE, e)
        ext = EXTENSIONS.get(mime_type, "bin")
        key = f"{checksum}.{ext}"

        try:
            url = self.backend.write(key, data, mime_type)
        except StorageError:
            raise
        except OSError as e:
            logger.error(f"Writing blob {key} failed: {e}")
            raise StorageError(f"Failed to store {key}", StorageErrorCode.UPLOAD_FAILED, e)

        try:
            return self.file_repo.create(
                file_id=str(uuid.uuid4()),
                file_name=key,
                file_size=len(data),
                mime_type=mime_type,
                checksum=checksum,
                url=url,
                storage_provider=self.provider,
            )
        except DuplicateFileError:
            winner = self.find_by_checksum(checksum)
            if winner is None:
                raise
            return winner

    def get(self, url: str) -> bytes:
        return self.backend.read(url)
