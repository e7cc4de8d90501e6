"""Public gallery listing."""

import logging
from typing import List

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from src.shared.errors import StorageError
from src.shared.gallery.buckets import parse_bucket
from src.shared.storage.object_store import LocalObjectStore, ObjectStoreError, get_object_store

router = APIRouter(prefix="/api/images", tags=["gallery"])


async def list_bucket_urls(store: LocalObjectStore, bucket_name: str) -> List[str]:
    bucket = parse_bucket(bucket_name)
    try:
        keys = await run_in_threadpool(store.list_keys, bucket.value)
    except ObjectStoreError as e:
        logging.error(f"Failed to list {bucket.value} images: {str(e)}")
        raise StorageError("Failed to load images. Please try again later.")
    return [store.url_for(bucket.value, key) for key in keys]


@router.get("/{bucket}", response_model=List[str])
async def get_images(bucket: str, store: LocalObjectStore = Depends(get_object_store)):
    """Image URLs in upload order. bucket is one of: gallery, flash."""
    return await list_bucket_urls(store, bucket)
