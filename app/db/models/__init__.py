# Models package (re-export feature modules for stable imports)
from .media.file import StoredFileRecord
from .media.image import ImageRecord

__all__ = [
    "StoredFileRecord",
    "ImageRecord",
]
