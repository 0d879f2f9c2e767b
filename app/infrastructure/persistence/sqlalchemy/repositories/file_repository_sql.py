import logging
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import StoredFileRecord
from .....application.ports.file_repo import FileRepository, StoredFile
from .....exceptions import DuplicateFileError
from .....utils import as_utc

logger = logging.getLogger(__name__)


def to_stored_file(f: StoredFileRecord) -> StoredFile:
    return StoredFile(
        id=f.id,
        file_name=f.file_name,
        file_size=f.file_size,
        mime_type=f.mime_type,
        checksum=f.checksum,
        url=f.url,
        storage_provider=f.storage_provider,
        created_at=as_utc(f.created_at),
        updated_at=as_utc(f.updated_at),
    )


class SqlFileRepository(FileRepository):
    def __init__(self, session: Session):
        self.session = session

    def create(self, file_id: str, file_name: str, file_size: int, mime_type: str, checksum: str, url: str, storage_provider: str) -> StoredFile:
        rec = StoredFileRecord(
            id=file_id,
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            checksum=checksum,
            url=url,
            storage_provider=storage_provider,
        )
        self.session.add(rec)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.info(f"File with checksum {checksum} was stored concurrently in {storage_provider}")
            raise DuplicateFileError(checksum, storage_provider)
        self.session.refresh(rec)
        logger.info(f"File record created: {rec.id}")
        return to_stored_file(rec)

    def get(self, file_id: str) -> Optional[StoredFile]:
        f = self.session.get(StoredFileRecord, file_id)
        return to_stored_file(f) if f else None

    def find_by_checksum(self, checksum: str, storage_provider: str) -> Optional[StoredFile]:
        f = self.session.exec(
            select(StoredFileRecord)
            .where(StoredFileRecord.checksum == checksum)
            .where(StoredFileRecord.storage_provider == storage_provider)
        ).first()
        return to_stored_file(f) if f else None
