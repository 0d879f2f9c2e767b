from typing import Optional
from dataclasses import dataclass
from datetime import datetime


@dataclass
class StoredFile:
    id: str
    file_name: str
    file_size: int
    mime_type: str
    checksum: str
    url: str
    storage_provider: str
    created_at: datetime
    updated_at: datetime


class FileRepository:
    def create(self, file_id: str, file_name: str, file_size: int, mime_type: str, checksum: str, url: str, storage_provider: str) -> StoredFile:
        """Raises DuplicateFileError when (checksum, storage_provider) is taken."""
        ...

    def get(self, file_id: str) -> Optional[StoredFile]:
        ...

    def find_by_checksum(self, checksum: str, storage_provider: str) -> Optional[StoredFile]:
        ...
