"""Local storage for message image attachments.

Files are written under ``settings.upload_dir`` with a UUID file name and
served read-only under ``settings.upload_url_prefix``.
"""

from __future__ import annotations

import uuid
from pathlib import Path

import structlog
from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from guildchat.config import get_settings
from guildchat.errors import ValidationFailed

logger = structlog.get_logger()

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
DEFAULT_EXTENSION = ".png"


def ensure_upload_directory() -> Path:
    path = Path(get_settings().upload_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def generate_uuid_filename(original_filename: str | None) -> str:
    """UUID file name keeping an allowed image extension."""
    ext = Path(original_filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        ext = DEFAULT_EXTENSION
    return f"{uuid.uuid4()}{ext}"


async def save_image(upload: UploadFile) -> str:
    """
    Validate and store an uploaded image. Returns its public URL.

    Raises:
        ValidationFailed: Not an image, empty, or larger than the size limit.
    """
    settings = get_settings()
    if not (upload.content_type or "").startswith("image/"):
        raise ValidationFailed("Only image files are allowed")

    content = await upload.read(settings.upload_max_bytes + 1)
    if not content:
        raise ValidationFailed("Uploaded image is empty")
    if len(content) > settings.upload_max_bytes:
        raise ValidationFailed(f"Image exceeds the {settings.upload_max_bytes // (1024 * 1024)}MB limit")

    filename = generate_uuid_filename(upload.filename)
    target = ensure_upload_directory() / filename
    await run_in_threadpool(target.write_bytes, content)

    logger.info("image_uploaded", filename=filename, size=len(content))
    return f"{settings.upload_url_prefix.rstrip('/')}/{filename}"
