# backend/app/services/s3_service.py
# AWS S3 integration for KYC documents and profile images

import logging
import mimetypes
import uuid
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import get_settings

logger = logging.getLogger(__name__)

_s3_client = None


def get_s3_client():
    """Build the S3 client on first use. Returns None when credentials are missing."""
    global _s3_client
    if _s3_client is not None:
        return _s3_client

    settings = get_settings()
    if not settings.AWS_ACCESS_KEY_ID or not settings.AWS_SECRET_ACCESS_KEY:
        logger.warning("AWS credentials not provided. S3 functionality will be disabled.")
        return None

    try:
        _s3_client = boto3.client(
            "s3",
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION,
        )
        logger.info("S3 client initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize S3 client: {e}")
        _s3_client = None
    return _s3_client


def build_object_key(folder: str, content_type: str) -> str:
    """Random object name under the folder, with an extension guessed from the content type."""
    extension = mimetypes.guess_extension(content_type or "") or ""
    return f"{folder}/{uuid.uuid4().hex}{extension}"


def upload_file(content: bytes, folder: str, content_type: str) -> Optional[str]:
    """Upload bytes to the bucket and return their public URL, or None on failure."""
    s3_client = get_s3_client()
    if not s3_client:
        logger.error("S3 client not initialized - missing AWS credentials")
        return None

    settings = get_settings()
    if not settings.S3_BUCKET_NAME:
        logger.error("S3 bucket name not configured")
        return None

    key = build_object_key(folder, content_type)
    try:
        s3_client.put_object(
            Bucket=settings.S3_BUCKET_NAME,
            Key=key,
            Body=content,
            ContentType=content_type,
        )
        logger.info(f"Uploaded object {key} ({len(content)} bytes)")
        return f"https://{settings.S3_BUCKET_NAME}.s3.{settings.AWS_REGION}.amazonaws.com/{key}"
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error uploading {key} to S3: {e}")
        return None
