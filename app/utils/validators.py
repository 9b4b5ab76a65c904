# backend/app/utils/validators.py
# Validation functions for input data

import re
from typing import Optional

from bson import ObjectId

DOCUMENT_CONTENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def validate_phone(phone: Optional[str]) -> bool:
    """Validate phone number format if provided."""
    if not phone:
        return True
    # Optional +, first digit 1-9, at most 16 digits in total
    pattern = r"^\+?[1-9]\d{0,15}$"
    return bool(re.match(pattern, phone))


def validate_object_id(value: Optional[str]) -> bool:
    """Check that a path or token value is a valid MongoDB ObjectId."""
    if not value:
        return False
    return ObjectId.is_valid(value)


def validate_image_type(content_type: Optional[str]) -> bool:
    """Only images are accepted for logos and profile pictures."""
    if not content_type:
        return False
    return content_type.lower().startswith("image/")


def validate_document_type(content_type: Optional[str]) -> bool:
    """Proof of address may be an image, a PDF or a word-processor document."""
    if not content_type:
        return False
    content_type = content_type.lower()
    return (
        content_type.startswith("image/")
        or content_type in DOCUMENT_CONTENT_TYPES
        or "document" in content_type
    )


def validate_file_size(size: int, max_size: int) -> bool:
    """Reject empty uploads and anything over the configured limit."""
    return 0 < size <= max_size

