# Services package (re-export feature modules for stable imports)
from .notifications.notification_service import NotificationChannel
from .notifications.sse import StreamConnection, image_event_stream

__all__ = [
    "NotificationChannel",
    "StreamConnection",
    "image_event_stream",
]
