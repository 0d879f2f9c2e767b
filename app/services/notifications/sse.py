# app/services/notifications/sse.py
import asyncio
import logging
from typing import AsyncIterator, Optional

from .notification_service import NotificationChannel

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ":keep-alive\n\n"

_CLOSED = object()


def format_sse(payload: str) -> str:
    return f"data: {payload}\n\n"


class StreamConnection:
    """Bridges publishes from any thread into the event loop serving one client."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, payload: str) -> None:
        if self._closed:
            raise ConnectionError("Event stream is closed")
        self._loop.call_soon_threadsafe(self._queue.put_nowait, payload)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, _CLOSED)
        except RuntimeError:
            # loop already shut down, nobody is reading
            pass

    async def receive(self) -> Optional[str]:
        """Next payload, or None once the connection has been closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item


async def image_event_stream(channel: NotificationChannel, image_id: str, connection: StreamConnection,
                             keepalive_seconds: float) -> AsyncIterator[str]:
    """SSE frames for one subscriber; ends after the terminal event and always deregisters."""
    try:
        while True:
            try:
                message = await asyncio.wait_for(connection.receive(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            if message is None:
                break
            yield format_sse(message)
    finally:
        channel.unsubscribe(image_id, connection)
        connection.close()
        logger.debug(f"Event stream for image {image_id} finished")
