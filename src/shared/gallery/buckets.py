"""Public image sets shown on the site."""

import enum

from src.shared.errors import NotFoundError


class ImageBucket(str, enum.Enum):
    GALLERY = "gallery"
    FLASH = "flash"


def parse_bucket(name: str) -> ImageBucket:
    """Map a path/query value to a bucket, or 404."""
    try:
        return ImageBucket((name or "").strip().lower())
    except ValueError:
        raise NotFoundError(f"Unknown image bucket: {name}")
