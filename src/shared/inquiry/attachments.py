"""Reference image uploads: validation, storage key generation and storage."""

import asyncio
import io
import logging
import os
import uuid
from datetime import datetime
from typing import Optional, Tuple

from fastapi import Depends, UploadFile
from PIL import Image, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from src.shared.config import get_settings
from src.shared.errors import AttachmentError
from src.shared.storage.object_store import LocalObjectStore, ObjectStoreError, get_object_store

# Allowed image MIME types -> accepted file extensions (first is canonical)
ALLOWED_IMAGE_TYPES = {
    'image/jpeg': ('.jpg', '.jpeg'),
    'image/png': ('.png',),
}

# Pillow format name expected for each MIME type
PIL_FORMATS = {
    'image/jpeg': 'JPEG',
    'image/png': 'PNG',
}

MAX_IMAGE_SIZE_BYTES = 5 * 1024 * 1024


def has_file(upload: Optional[UploadFile]) -> bool:
    """Browsers send an empty part with no filename when nothing was chosen."""
    return upload is not None and bool(upload.filename)


def generate_storage_key(extension: str, now: Optional[datetime] = None) -> str:
    """Timestamp + random UUID + extension. The client filename is never used."""
    now = now or datetime.utcnow()
    return f"{now.strftime('%Y%m%dT%H%M%S%f')}-{uuid.uuid4().hex}{extension}"


async def read_image_upload(upload: UploadFile, max_bytes: int = MAX_IMAGE_SIZE_BYTES) -> Tuple[bytes, str]:
    """
    Validate an uploaded image and return its bytes and canonical extension.

    Checks declared type against the allow-list, the filename extension
    against the declared type, the size, and that the bytes decode as an
    image of the declared format.
    """
    content_type = (upload.content_type or "").lower()
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise AttachmentError("Invalid file type. Only JPEG and PNG images are accepted.")

    _, ext = os.path.splitext(os.path.basename(upload.filename or ""))
    if ext.lower() not in ALLOWED_IMAGE_TYPES[content_type]:
        raise AttachmentError("Invalid file type. File extension does not match its type.")

    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        max_mb = max_bytes / (1024 * 1024)
        raise AttachmentError(f"Image too large. Maximum size: {max_mb:g}MB")
    if not data:
        raise AttachmentError("Image file is empty.")

    # Verify it's a valid image using PIL
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logging.info(f"Rejected attachment that failed to decode: {str(e)}")
        raise AttachmentError("Invalid image file.")

    if image_format != PIL_FORMATS[content_type]:
        raise AttachmentError("Invalid file type. File contents do not match its type.")

    return data, ALLOWED_IMAGE_TYPES[content_type][0]


class AttachmentHandler:
    """Stores at most one reference image per submission."""

    def __init__(self, store: LocalObjectStore, bucket: str, max_bytes: int = MAX_IMAGE_SIZE_BYTES,
                 timeout: float = 10.0):
        self.store = store
        self.bucket = bucket
        self.max_bytes = max_bytes
        self.timeout = timeout

    async def store_upload(self, upload: Optional[UploadFile]) -> Optional[str]:
        """Return the attachment URL, or None when no file was sent."""
        if not has_file(upload):
            return None

        data, extension = await read_image_upload(upload, self.max_bytes)
        key = generate_storage_key(extension)
        try:
            url = await asyncio.wait_for(
                run_in_threadpool(self.store.put, self.bucket, key, data),
                timeout=self.timeout,
            )
        except (ObjectStoreError, asyncio.TimeoutError) as e:
            logging.error(f"Failed to store attachment {key}: {str(e) or type(e).__name__}")
            raise AttachmentError("Failed to store attachment. Please try again later.", status_code=500)

        logging.info(f"Stored attachment {self.bucket}/{key} ({len(data)} bytes)")
        return url


def get_attachment_handler(store: LocalObjectStore = Depends(get_object_store)) -> AttachmentHandler:
    """Dependency: handler writing to the inquiry upload bucket."""
    settings = get_settings()
    return AttachmentHandler(
        store=store,
        bucket=settings.inquiry_upload_bucket,
        max_bytes=settings.max_upload_bytes,
        timeout=settings.storage_timeout_seconds,
    )
