import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

from ...application.ports.image_transformer import ImageInfo, ProcessedImage
from ...exceptions import UnsupportedImageError

logger = logging.getLogger(__name__)

FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}

# fixed encoder settings keep the output byte-identical for identical input
SAVE_OPTIONS = {
    "JPEG": {"quality": 90, "optimize": False, "progressive": False},
    "PNG": {"optimize": False},
    "WEBP": {"quality": 90, "method": 4},
    "GIF": {},
}


class PillowImageTransformer:
    def _open(self, data: bytes) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
        except (UnidentifiedImageError, OSError) as e:
            raise UnsupportedImageError("Unable to decode image data") from e
        if img.format not in FORMAT_MIME_TYPES:
            raise UnsupportedImageError(f"Unsupported image format: {img.format}")
        return img

    def probe(self, data: bytes) -> ImageInfo:
        img = self._open(data)
        return ImageInfo(width=img.width, height=img.height, mime_type=FORMAT_MIME_TYPES[img.format])

    def resize(self, data: bytes, target_width: Optional[int] = None, target_height: Optional[int] = None) -> ProcessedImage:
        img = self._open(data)
        fmt = img.format
        mime_type = FORMAT_MIME_TYPES[fmt]

        if target_width is None and target_height is None:
            return ProcessedImage(data=data, width=img.width, height=img.height, mime_type=mime_type)

        if target_width is None:
            target_width = max(1, round(img.width * target_height / img.height))
        elif target_height is None:
            target_height = max(1, round(img.height * target_width / img.width))

        try:
            img.load()
        except OSError as e:
            raise UnsupportedImageError("Unable to decode image data") from e
        if fmt == "JPEG" and img.mode != "RGB":
            img = img.convert("RGB")
        elif fmt == "GIF" and img.mode not in ("P", "L"):
            img = img.convert("P")

        resized = img.resize((target_width, target_height), Image.Resampling.LANCZOS)
        out = io.BytesIO()
        resized.save(out, format=fmt, **SAVE_OPTIONS[fmt])
        output = out.getvalue()

        final = Image.open(io.BytesIO(output))
        logger.debug(f"Resized {img.width}x{img.height} -> {final.width}x{final.height} ({mime_type})")
        return ProcessedImage(data=output, width=final.width, height=final.height, mime_type=mime_type)
