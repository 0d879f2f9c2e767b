from uuid import UUID
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool
import logging

from ..config import settings
from ..bootstrap import get_notification_channel
from ..application.ports.image_repo import ImageStatus, ImageWithFiles
from ..application.services.images_service import ImagesService
from ..application.services.resize_worker import DEFAULT_FAILURE_MESSAGE, SUCCESS_MESSAGE
from ..schemas import ErrorResponse, ImageEvent, ImageEventType
from ..services.notifications.notification_service import NotificationChannel
from ..services.notifications.sse import StreamConnection, image_event_stream
from .images_router import get_images_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def terminal_event(record: ImageWithFiles) -> ImageEvent:
    image = record.image
    if image.status is ImageStatus.FAILED:
        return ImageEvent(type=ImageEventType.FAILED, imageId=image.id, message=DEFAULT_FAILURE_MESSAGE)
    url = record.processed_file.url if record.processed_file else record.original_file.url
    return ImageEvent(type=ImageEventType.COMPLETED, imageId=image.id, message=SUCCESS_MESSAGE, url=url)


@router.get("/images/events/{image_id}", responses={404: {"model": ErrorResponse}})
async def image_events(
    image_id: UUID,
    channel: NotificationChannel = Depends(get_notification_channel),
    images_service: ImagesService = Depends(get_images_service),
):
    """Server-sent events: one terminal event for the image, then the stream closes."""
    key = str(image_id)
    await run_in_threadpool(images_service.get_record, key)  # 404 for unknown ids

    connection = StreamConnection()
    channel.subscribe(key, connection)
    try:
        # the image may have finished before this client connected
        record = await run_in_threadpool(images_service.get_record, key)
    except Exception:
        channel.unsubscribe(key, connection)
        raise
    if record.image.status.is_terminal:
        logger.info(f"Image {key} already {record.image.status.value}, replaying terminal event")
        channel.publish(key, terminal_event(record))

    return StreamingResponse(
        image_event_stream(channel, key, connection, settings.SSE_KEEPALIVE_SECONDS),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
