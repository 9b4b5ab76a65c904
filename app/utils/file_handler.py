# backend/app/utils/file_handler.py
# Decoding and checking uploaded files before they are sent to S3

import base64
import binascii
import logging
from typing import Callable, Optional, Tuple

from app.exceptions import ServerError, ValidationFailedError
from app.services.s3_service import upload_file
from app.utils.validators import validate_file_size

logger = logging.getLogger(__name__)


def decode_base64_file(data: str, default_content_type: str = "application/octet-stream") -> Tuple[bytes, str]:
    """
    Decode a base64 payload, optionally wrapped in a data URI.
    Returns the raw bytes and the content type (taken from the data URI when present).
    Raises ValueError for malformed input.
    """
    content_type = default_content_type
    payload = data.strip()
    if payload.startswith("data:") and ";base64," in payload:
        header, payload = payload.split(";base64,", 1)
        content_type = header[len("data:"):] or default_content_type

    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("File is not valid base64 data")
    return content, content_type


def store_upload(
    field: str,
    content: bytes,
    content_type: Optional[str],
    folder: str,
    max_size: int,
    type_check: Callable[[Optional[str]], bool],
    type_message: str,
) -> str:
    """Validate an uploaded file and push it to object storage, returning its URL."""
    if not type_check(content_type):
        raise ValidationFailedError([{"field": field, "message": type_message}])
    if not validate_file_size(len(content), max_size):
        raise ValidationFailedError(
            [{"field": field, "message": f"File must be between 1 byte and {max_size // (1024 * 1024)}MB"}]
        )

    url = upload_file(content, folder, content_type)
    if not url:
        logger.error(f"Upload of {field} failed")
        raise ServerError("File upload failed")
    return url
