# app/services/notifications/notification_service.py
import logging
import threading
from typing import Dict, Protocol, Set

from app.schemas import ImageEvent

logger = logging.getLogger(__name__)


class Connection(Protocol):
    def send(self, payload: str) -> None:
        ...

    def close(self) -> None:
        ...


class NotificationChannel:
    """Process-wide registry of live event-stream connections per image id.

    Events are delivered only to connections registered at publish time; nothing is
    buffered for later subscribers. A terminal event closes and removes every
    connection of that image.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Set[Connection]] = {}

    def subscribe(self, image_id: str, connection: Connection) -> None:
        with self._lock:
            self._subscribers.setdefault(image_id, set()).add(connection)
        logger.info(f"Client subscribed to image {image_id}")

    def unsubscribe(self, image_id: str, connection: Connection) -> bool:
        with self._lock:
            connections = self._subscribers.get(image_id)
            if not connections or connection not in connections:
                return False
            connections.discard(connection)
            if not connections:
                del self._subscribers[image_id]
        logger.info(f"Client unsubscribed from image {image_id}")
        return True

    def publish(self, image_id: str, event: ImageEvent) -> int:
        """Send event to every subscriber of image_id and return how many received it."""
        with self._lock:
            if event.is_terminal:
                connections = self._subscribers.pop(image_id, set())
            else:
                connections = set(self._subscribers.get(image_id, ()))

        if not connections:
            logger.debug(f"No subscribers for image {image_id}, dropping {event.type.value} event")
            return 0

        payload = event.to_json()
        delivered = 0
        # sends happen outside the lock so other images are never blocked
        for connection in connections:
            try:
                connection.send(payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Failed to send event to client of image {image_id}: {e}")
                if not event.is_terminal:
                    self.unsubscribe(image_id, connection)
            if event.is_terminal:
                try:
                    connection.close()
                except Exception as e:
                    logger.warning(f"Failed to close client stream of image {image_id}: {e}")

        logger.info(f"Sent {event.type.value} event for image {image_id} to {delivered} client(s)")
        return delivered

    def subscriber_count(self, image_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(image_id, ()))

    def total_subscriber_count(self) -> int:
        with self._lock:
            return sum(len(c) for c in self._subscribers.values())
