import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from sqlalchemy import update
from sqlmodel import Session, select

from .....db.models import ImageRecord, StoredFileRecord
from .....application.ports.file_repo import StoredFile
from .....application.ports.image_repo import (
    Image,
    ImageRepository,
    ImageStatus,
    ImageWithFiles,
    NewImage,
    PaginatedResult,
)
from .....exceptions import ImageNotFoundError
from .....utils import as_utc, utcnow
from .file_repository_sql import to_stored_file

logger = logging.getLogger(__name__)


class SqlImageRepository(ImageRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_image(self, r: ImageRecord) -> Image:
        return Image(
            id=r.id,
            title=r.title,
            original_width=r.original_width,
            original_height=r.original_height,
            processed_width=r.processed_width,
            processed_height=r.processed_height,
            original_file_id=r.original_file_id,
            processed_file_id=r.processed_file_id,
            status=ImageStatus(r.status),
            created_at=as_utc(r.created_at),
            updated_at=as_utc(r.updated_at),
        )

    def _load_files(self, file_ids: Iterable[str]) -> Dict[str, StoredFile]:
        ids = {i for i in file_ids if i}
        if not ids:
            return {}
        rows = self.session.exec(select(StoredFileRecord).where(StoredFileRecord.id.in_(sorted(ids)))).all()
        return {f.id: to_stored_file(f) for f in rows}

    def _with_files(self, rows: List[ImageRecord]) -> List[ImageWithFiles]:
        files = self._load_files(
            [r.original_file_id for r in rows] + [r.processed_file_id for r in rows]
        )
        return [
            ImageWithFiles(
                image=self._to_image(r),
                original_file=files[r.original_file_id],
                processed_file=files.get(r.processed_file_id) if r.processed_file_id else None,
            )
            for r in rows
        ]

    def create(self, new_image: NewImage) -> Image:
        now = utcnow()
        rec = ImageRecord(
            id=new_image.id,
            title=new_image.title,
            original_width=new_image.original_width,
            original_height=new_image.original_height,
            processed_width=new_image.processed_width,
            processed_height=new_image.processed_height,
            original_file_id=new_image.original_file_id,
            processed_file_id=new_image.processed_file_id,
            status=new_image.status.value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(rec)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(rec)
        logger.info(f"Image record created: {rec.id} ({rec.status})")
        return self._to_image(rec)

    def get(self, image_id: str) -> Optional[Image]:
        r = self.session.get(ImageRecord, image_id)
        return self._to_image(r) if r else None

    def get_with_files(self, image_id: str) -> Optional[ImageWithFiles]:
        r = self.session.get(ImageRecord, image_id)
        if not r:
            return None
        return self._with_files([r])[0]

    def find_processed(self, original_file_id: str, width: int, height: int) -> Optional[Image]:
        r = self.session.exec(
            select(ImageRecord)
            .where(ImageRecord.original_file_id == original_file_id)
            .where(ImageRecord.processed_width == width)
            .where(ImageRecord.processed_height == height)
            .where(ImageRecord.status == ImageStatus.STORED.value)
            .where(ImageRecord.processed_file_id.is_not(None))
            .order_by(ImageRecord.created_at.asc())
        ).first()
        return self._to_image(r) if r else None

    def update_processing_result(self, image_id: str, status: ImageStatus, processed_file_id: Optional[str] = None,
                                 processed_width: Optional[int] = None, processed_height: Optional[int] = None) -> Optional[Image]:
        values = {"status": status.value, "updated_at": utcnow()}
        if processed_file_id is not None:
            values.update(
                processed_file_id=processed_file_id,
                processed_width=processed_width,
                processed_height=processed_height,
            )
        # only a PROCESSING row may move to a terminal status
        stmt = (
            update(ImageRecord)
            .where(ImageRecord.id == image_id)
            .where(ImageRecord.status == ImageStatus.PROCESSING.value)
            .values(**values)
        )
        try:
            result = self.session.exec(stmt)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        r = self.session.get(ImageRecord, image_id, populate_existing=True)
        if not r:
            raise ImageNotFoundError(image_id)
        if result.rowcount == 0:
            logger.info(f"Image {image_id} already {r.status}; {status.value} not applied")
            return None
        logger.info(f"Image record updated: {image_id} ({r.status})")
        return self._to_image(r)

    def list(self, cursor: Optional[datetime], direction: str, limit: int, title: Optional[str]) -> PaginatedResult[ImageWithFiles]:
        query = select(ImageRecord)
        if title:
            query = query.where(ImageRecord.title.ilike(f"%{title}%"))
        if cursor is not None:
            if direction == "next":
                query = query.where(ImageRecord.created_at < cursor)
            else:
                query = query.where(ImageRecord.created_at > cursor)
        if direction == "next":
            query = query.order_by(ImageRecord.created_at.desc())
        else:
            query = query.order_by(ImageRecord.created_at.asc())

        # one extra row tells us whether another page exists
        rows = list(self.session.exec(query.limit(limit + 1)).all())
        has_more = len(rows) > limit
        rows = rows[:limit]
        if direction == "prev":
            rows.reverse()

        if direction == "next":
            has_next, has_prev = has_more, cursor is not None
        else:
            has_next, has_prev = cursor is not None, has_more

        return PaginatedResult(items=self._with_files(rows), has_next=has_next, has_prev=has_prev)
