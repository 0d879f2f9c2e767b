from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlmodel import Session
import logging

from ..persistence.database import get_session
from ..bootstrap import build_images_service, build_upload_service
from ..application.services.images_service import ImagesService
from ..application.services.upload_service import UploadImageService
from ..schemas import ErrorResponse, ImageResponse, PaginatedImageResponse, UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/images", tags=["Images"])

UPLOAD_ERRORS = {
    400: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    415: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


def get_upload_service(session: Session = Depends(get_session)) -> UploadImageService:
    return build_upload_service(session)


def get_images_service(session: Session = Depends(get_session)) -> ImagesService:
    return build_images_service(session)


@router.post("", response_model=UploadResponse, status_code=202, responses=UPLOAD_ERRORS)
def upload_image(
    file: UploadFile = File(...),
    title: str = Form(...),
    width: int = Form(...),
    height: int = Form(...),
    upload_service: UploadImageService = Depends(get_upload_service),
):
    """Accept an image and the size it should be served at; processing may finish later."""
    data = file.file.read()
    logger.info(f"Upload received: {file.filename} ({len(data)} bytes) -> {width}x{height}")
    image_id = upload_service.upload(data, title=title, width=width, height=height, content_type=file.content_type)
    return UploadResponse(id=image_id)


@router.get("", response_model=PaginatedImageResponse, responses={400: {"model": ErrorResponse}})
def list_images(
    title: Optional[str] = Query(None),
    cursor: Optional[str] = Query(None),
    direction: str = Query("next", pattern="^(next|prev)$"),
    limit: int = Query(20, ge=1, le=100),
    images_service: ImagesService = Depends(get_images_service),
):
    return images_service.list_images(title=title, cursor=cursor, direction=direction, limit=limit)


@router.get("/{image_id}", response_model=ImageResponse, responses={404: {"model": ErrorResponse}})
def get_image(image_id: UUID, images_service: ImagesService = Depends(get_images_service)):
    return images_service.get_image(str(image_id))
