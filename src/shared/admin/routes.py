"""Admin routes: inquiry review, abuse ledger and gallery management."""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from src.shared.auth.database import get_db
from src.shared.auth.dependencies import Identity, require_admin
from src.shared.config import get_settings
from src.shared.errors import AttachmentError, NotFoundError, StorageError, ValidationError
from src.shared.gallery.buckets import parse_bucket
from src.shared.inquiry.abuse_ledger import list_abuse_logs
from src.shared.inquiry.attachments import generate_storage_key, has_file, read_image_upload
from src.shared.inquiry.schemas import AbuseLogResponse, InquiryResponse
from src.shared.inquiry.store import list_inquiries
from src.shared.storage.object_store import LocalObjectStore, ObjectStoreError, SAFE_NAME, get_object_store

router = APIRouter(tags=["admin"])


class UploadImageResponse(BaseModel):
    message: str
    bucket: str
    name: str
    url: str


class DeleteImageResponse(BaseModel):
    message: str


@router.get("/inquiries", response_model=List[InquiryResponse])
async def get_inquiries(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Stored inquiries, newest first."""
    return list_inquiries(db, limit=limit, offset=offset)


@router.get("/abuse-logs", response_model=List[AbuseLogResponse])
async def get_abuse_logs(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Abuse ledger entries, newest first."""
    return list_abuse_logs(db, limit=limit, offset=offset)


@router.post("/upload-image", response_model=UploadImageResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    bucket: str = Form(...),
    file: UploadFile = File(...),
    admin: Identity = Depends(require_admin),
    store: LocalObjectStore = Depends(get_object_store),
):
    """Add an image to the gallery or flash set."""
    image_bucket = parse_bucket(bucket)
    if not has_file(file):
        raise ValidationError({"file": "An image file is required."})

    settings = get_settings()
    data, extension = await read_image_upload(file, settings.max_upload_bytes)
    key = generate_storage_key(extension)
    try:
        url = await asyncio.wait_for(
            run_in_threadpool(store.put, image_bucket.value, key, data),
            timeout=settings.storage_timeout_seconds,
        )
    except (ObjectStoreError, asyncio.TimeoutError) as e:
        logging.error(f"Error uploading {image_bucket.value} image: {str(e) or type(e).__name__}")
        raise AttachmentError("Failed to upload image.", status_code=500)

    logging.info(f"Admin {admin.email} uploaded {image_bucket.value}/{key}")
    return UploadImageResponse(message="Image uploaded.", bucket=image_bucket.value, name=key, url=url)


@router.delete("/delete-image", response_model=DeleteImageResponse)
async def delete_image(
    bucket: str = Query(...),
    name: str = Query(..., min_length=1),
    admin: Identity = Depends(require_admin),
    store: LocalObjectStore = Depends(get_object_store),
):
    """Remove an image from the gallery or flash set."""
    image_bucket = parse_bucket(bucket)
    if not SAFE_NAME.match(name) or ".." in name:
        raise ValidationError({"name": "Invalid image name."})

    try:
        deleted = await run_in_threadpool(store.delete, image_bucket.value, name)
    except ObjectStoreError:
        raise StorageError("Failed to delete image. Please try again later.")
    if not deleted:
        raise NotFoundError("Image not found.")

    logging.info(f"Admin {admin.email} deleted {image_bucket.value}/{name}")
    return DeleteImageResponse(message="Image deleted.")
