import logging
import queue
import threading
from typing import Any, Dict, Optional

from ...application.ports.job_queue import Delivery

logger = logging.getLogger(__name__)


class InMemoryJobQueue:
    """Process-local queue; unacked deliveries are lost with the process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._topics: Dict[str, queue.Queue] = {}

    def _topic(self, topic: str) -> queue.Queue:
        with self._lock:
            return self._topics.setdefault(topic, queue.Queue())

    def enqueue(self, topic: str, payload: Dict[str, Any]) -> None:
        self._topic(topic).put(dict(payload))
        logger.debug(f"Enqueued job on {topic}: {payload}")

    def dequeue(self, topic: str, timeout: float) -> Optional[Delivery]:
        try:
            payload = self._topic(topic).get(timeout=timeout)
        except queue.Empty:
            return None
        return Delivery(topic=topic, payload=payload, raw=payload)

    def ack(self, delivery: Delivery) -> None:
        self._topic(delivery.topic).task_done()

    def requeue_unacked(self, topic: str) -> int:
        return 0
