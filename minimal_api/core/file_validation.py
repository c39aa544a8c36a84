"""File validation utilities for upload security."""
from __future__ import annotations

import logging

from fastapi import UploadFile

from minimal_api.core.errors import PayloadTooLargeAppError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 8192


def _too_large(max_bytes: int, actual_bytes: int) -> PayloadTooLargeAppError:
    return PayloadTooLargeAppError(
        code="file_too_large",
        message=f"File too large. Maximum size: {max_bytes // (1024 * 1024)}MB",
        details={"max_bytes": max_bytes, "actual_bytes": actual_bytes},
    )


async def read_upload_file_limited(file: UploadFile, *, max_bytes: int) -> bytes:
    """Read an uploaded file in chunks enforcing the max size limit.

    Uses file.size if available (multipart headers), falls back to chunked
    reading with enforcement.

    Args:
        file: FastAPI upload file instance.
        max_bytes: Largest accepted size in bytes.

    Returns:
        File content as bytes if within the allowed size limit.

    Raises:
        PayloadTooLargeAppError: If the file exceeds the size limit.
    """
    file_size = getattr(file, "size", None)

    if file_size is not None and file_size > max_bytes:
        logger.warning(
            "file_validation.rejected_by_header",
            extra={"file_size": file_size, "max_bytes": max_bytes},
        )
        raise _too_large(max_bytes, file_size)

    # Chunked reading with secondary enforcement
    size = 0
    chunks: list[bytes] = []

    while True:
        chunk = await file.read(_CHUNK_SIZE)
        if not chunk:
            break

        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "file_validation.rejected_by_chunked_read",
                extra={"size": size, "max_bytes": max_bytes},
            )
            raise _too_large(max_bytes, size)
        chunks.append(chunk)

    return b"".join(chunks)
