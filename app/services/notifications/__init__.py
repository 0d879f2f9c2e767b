from .notification_service import Connection, NotificationChannel
from .sse import KEEPALIVE_FRAME, StreamConnection, format_sse, image_event_stream
