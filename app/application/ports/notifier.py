from typing import Protocol

from ...schemas import ImageEvent


class Notifier(Protocol):
    def publish(self, image_id: str, event: ImageEvent) -> int:
        ...
