from typing import Optional, Protocol

from .file_repo import StoredFile


class BlobStorage(Protocol):
    provider: str

    def write(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under key and return the public URL."""
        ...

    def read(self, url: str) -> bytes:
        ...


class ContentStore(Protocol):
    provider: str

    def put(self, data: bytes) -> StoredFile:
        ...

    def get(self, url: str) -> bytes:
        ...

    def find_by_checksum(self, checksum: str) -> Optional[StoredFile]:
        ...
