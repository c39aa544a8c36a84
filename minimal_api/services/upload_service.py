"""Storage for uploaded person images.

Uploads are copied byte for byte into a directory; nothing is decoded or
resized.
"""

from __future__ import annotations

import logging
from pathlib import Path

from minimal_api.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def safe_file_name(file_name: str | None) -> str:
    """Strip any directory components from a client-supplied file name.

    Raises:
        ValidationAppError: If nothing usable is left.
    """

    name = Path((file_name or "").replace("\\", "/")).name
    if name in ("", ".", ".."):
        raise ValidationAppError(
            code="invalid_file_name",
            message="Uploaded file must have a file name",
        )
    return name


def store_person_image(upload_dir: str | Path, person_id: int, file_name: str | None, data: bytes) -> Path:
    """Write an uploaded image to ``upload_dir/<person_id>/<file_name>``.

    Returns:
        Path of the written file.
    """

    target_dir = Path(upload_dir) / str(person_id)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / safe_file_name(file_name)
    target.write_bytes(data)

    logger.info(
        "person.image_stored",
        extra={"person_id": person_id, "file_name": target.name, "size": len(data)},
    )
    return target
