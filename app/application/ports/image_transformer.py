from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class ImageInfo:
    width: int
    height: int
    mime_type: str


@dataclass
class ProcessedImage:
    data: bytes
    width: int
    height: int
    mime_type: str


class ImageTransformer(Protocol):
    def probe(self, data: bytes) -> ImageInfo:
        ...

    def resize(self, data: bytes, target_width: Optional[int] = None, target_height: Optional[int] = None) -> ProcessedImage:
        ...
