from enum import Enum
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .schemas import ErrorResponse


class StorageErrorCode(str, Enum):
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    UNSUPPORTED_FILE_TYPE = "UNSUPPORTED_FILE_TYPE"


class StorageError(Exception):
    """Raised by the content store and blob backends."""

    def __init__(self, message: str, code: StorageErrorCode, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.code = code
        self.original_error = original_error


class UnsupportedImageError(ValueError):
    """Bytes that cannot be decoded as a supported image."""


class DuplicateFileError(Exception):
    """A file row with the same (checksum, storage provider) already exists."""

    def __init__(self, checksum: str, storage_provider: str):
        super().__init__(f"File with checksum {checksum} already stored in {storage_provider}")
        self.checksum = checksum
        self.storage_provider = storage_provider


class ImageNotFoundError(LookupError):
    def __init__(self, image_id: str):
        super().__init__(f"Image with ID {image_id} not found")
        self.image_id = image_id


class InvalidCursorError(ValueError):
    pass


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return ErrorResponse(error=error_message).model_dump()


_STORAGE_STATUS = {
    StorageErrorCode.FILE_TOO_LARGE: 413,
    StorageErrorCode.UNSUPPORTED_FILE_TYPE: 415,
    StorageErrorCode.FILE_NOT_FOUND: 404,
}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code)
    )


async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    status_code = _STORAGE_STATUS.get(exc.code, 502)
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(str(exc), status_code)
    )
