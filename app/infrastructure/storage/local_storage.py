import logging
import os
import tempfile

from ...config import settings
from ...exceptions import StorageError, StorageErrorCode

logger = logging.getLogger(__name__)


class LocalBlobStorage:
    provider = "local"

    def __init__(self, base_path: str = None, base_url: str = None) -> None:
        self.base_path = base_path or settings.STORAGE_BASE_PATH
        self.base_url = (base_url or settings.STORAGE_BASE_URL).rstrip("/")

    def _path_for(self, key: str) -> str:
        return os.path.join(self.base_path, key)

    def write(self, key: str, data: bytes, content_type: str) -> str:
        os.makedirs(self.base_path, exist_ok=True)
        path = self._path_for(key)
        # one temp file per writer; concurrent writes of a key never share it
        fd, tmp_path = tempfile.mkstemp(dir=self.base_path, prefix=f".{key}.", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            # same key always means same bytes, so replacing is harmless
            os.replace(tmp_path, path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Failed to write {key}", StorageErrorCode.UPLOAD_FAILED, e)
        logger.info(f"Stored {len(data)} bytes at {path}")
        return f"{self.base_url}/{key}"

    def read(self, url: str) -> bytes:
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            raise StorageError(f"URL does not belong to local storage: {url}", StorageErrorCode.FILE_NOT_FOUND)
        key = url[len(prefix):]
        if not key or "/" in key or key.startswith("."):
            raise StorageError(f"Invalid storage key in URL: {url}", StorageErrorCode.FILE_NOT_FOUND)
        path = self._path_for(key)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise StorageError(f"File not found: {key}", StorageErrorCode.FILE_NOT_FOUND, e)
