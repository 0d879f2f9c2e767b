from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field


class ResizeJob(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_id: str = Field(alias="imageId", min_length=1)
    title: str = ""
    target_width: Optional[int] = Field(default=None, alias="targetWidth", ge=1)
    target_height: Optional[int] = Field(default=None, alias="targetHeight", ge=1)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass
class Delivery:
    topic: str
    payload: Optional[Dict[str, Any]]
    raw: Any = field(default=None, repr=False)


class JobQueue(Protocol):
    def enqueue(self, topic: str, payload: Dict[str, Any]) -> None:
        ...

    def dequeue(self, topic: str, timeout: float) -> Optional[Delivery]:
        ...

    def ack(self, delivery: Delivery) -> None:
        ...

    def requeue_unacked(self, topic: str) -> int:
        ...
