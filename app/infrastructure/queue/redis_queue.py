import json
import logging
import socket
from typing import Any, Dict, Optional

import redis

from ...application.ports.job_queue import Delivery

logger = logging.getLogger(__name__)


class RedisJobQueue:
    """Reliable list queue: jobs move to this consumer's processing list until acked.

    Each consumer owns its processing list, so requeue_unacked only recovers
    jobs this consumer took before it stopped, never jobs another live
    process is still handling.
    """

    def __init__(self, url: str = None, prefix: str = "jobs:", client: Optional[redis.Redis] = None,
                 consumer: str = None) -> None:
        if client is None and not url:
            raise RuntimeError("REDIS_URL is required for the redis queue backend")
        self.client = client or redis.Redis.from_url(url)
        self.prefix = prefix
        self.consumer = consumer or socket.gethostname()

    def _pending_key(self, topic: str) -> str:
        return f"{self.prefix}{topic}"

    def _processing_key(self, topic: str) -> str:
        return f"{self.prefix}{topic}:processing:{self.consumer}"

    def enqueue(self, topic: str, payload: Dict[str, Any]) -> None:
        self.client.lpush(self._pending_key(topic), json.dumps(payload))
        logger.debug(f"Enqueued job on {topic}: {payload}")

    def dequeue(self, topic: str, timeout: float) -> Optional[Delivery]:
        raw = self.client.blmove(
            self._pending_key(topic), self._processing_key(topic), timeout, "RIGHT", "LEFT"
        )
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding unparseable job on {topic}: {raw!r}")
            payload = None
        if payload is not None and not isinstance(payload, dict):
            payload = None
        return Delivery(topic=topic, payload=payload, raw=raw)

    def ack(self, delivery: Delivery) -> None:
        self.client.lrem(self._processing_key(delivery.topic), 1, delivery.raw)

    def requeue_unacked(self, topic: str) -> int:
        moved = 0
        while self.client.lmove(self._processing_key(topic), self._pending_key(topic), "RIGHT", "RIGHT") is not None:
            moved += 1
        if moved:
            logger.info(f"Requeued {moved} unacknowledged job(s) of {self.consumer} on {topic}")
        return moved
