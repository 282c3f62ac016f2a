"""S3-compatible storage for attendee photos using presigned uploads."""

from __future__ import annotations

import logging
import secrets
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Any

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from settings import settings

logger = logging.getLogger(__name__)

_ALLOWED_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic"}


class S3StorageError(RuntimeError):
    """Raised when an S3 operation fails."""


@lru_cache(maxsize=1)
def _get_client() -> Any:
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT,
        config=Config(signature_version="s3v4"),
    )


def build_photo_key(filename: str) -> str:
    """Return a random object key under ``PHOTO_PREFIX`` keeping a known image suffix."""

    suffix = PurePosixPath(filename or "").suffix.lower()
    if suffix not in _ALLOWED_SUFFIXES:
        suffix = ""
    prefix = settings.PHOTO_PREFIX.strip("/")
    name = secrets.token_hex(16) + suffix
    return f"{prefix}/{name}" if prefix else name


def public_url(key: str) -> str:
    return f"{settings.photo_base_url}/{key}"


def key_from_public_url(url: str | None) -> str | None:
    """Reverse :func:`public_url`; foreign URLs yield ``None``."""

    if not url:
        return None
    base = settings.photo_base_url + "/"
    value = url.strip()
    if not value.startswith(base):
        return None
    key = value[len(base):].split("?", 1)[0]
    return key or None


def generate_presigned_upload(key: str, *, expires_in: int = 3600, content_type: str | None = None) -> dict[str, Any]:
    """Generate a presigned POST payload for direct uploads."""
    client = _get_client()
    fields: dict[str, Any] = {"acl": "public-read"}
    conditions: list[Any] = [
        {"acl": "public-read"},
        ["content-length-range", 1, settings.PHOTO_MAX_BYTES],
    ]

    if content_type:
        fields["Content-Type"] = content_type
        conditions.append({"Content-Type": content_type})

    try:
        return client.generate_presigned_post(
            settings.S3_BUCKET,
            key,
            Fields=fields,
            Conditions=conditions,
            ExpiresIn=expires_in,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.exception("Failed to generate presigned upload for %s", key)
        raise S3StorageError(str(exc)) from exc


def delete_object(key: str) -> None:
    client = _get_client()
    try:
        client.delete_object(Bucket=settings.S3_BUCKET, Key=key)
    except (BotoCoreError, ClientError) as exc:
        logger.exception("Failed to delete %s", key)
        raise S3StorageError(str(exc)) from exc


def ensure_bucket_exists() -> None:
    """Ensure the target bucket exists; create it if necessary."""
    client = _get_client()
    try:
        client.head_bucket(Bucket=settings.S3_BUCKET)
    except ClientError as exc:
        error_code = exc.response.get("Error", {}).get("Code")
        if error_code in {"404", "NoSuchBucket"}:
            params: dict[str, Any] = {"Bucket": settings.S3_BUCKET}
            if settings.S3_REGION and settings.S3_REGION != "us-east-1":
                params["CreateBucketConfiguration"] = {"LocationConstraint": settings.S3_REGION}
            client.create_bucket(**params)
            logger.info("bucket_created", extra={"bucket": settings.S3_BUCKET})
        else:
            logger.exception("Failed to ensure bucket %s", settings.S3_BUCKET)
            raise S3StorageError(str(exc)) from exc
    except BotoCoreError as exc:
        logger.exception("Failed to ensure bucket %s", settings.S3_BUCKET)
        raise S3StorageError(str(exc)) from exc
