"""Filesystem-backed blob store for recipe and avatar images."""

import mimetypes
import re
from pathlib import Path

from recipeshare.config import settings
from recipeshare.exceptions import UpstreamFailure, ValidationFailed
from recipeshare.logging import logger
from recipeshare.utils import new_id

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
MAX_BLOB_BYTES = 10 * 1024 * 1024

_REF_PATTERN = re.compile(r"^[0-9a-f]{32}\.[a-z0-9]+$")


class LocalBlobStore:
    """Stores blobs as files named by their reference.

    Args:
        root: Directory holding the files (defaults to settings.blob_dir)
        base_url: Public URL prefix; ``file://`` URLs are returned when unset
    """

    def __init__(self, root: Path | None = None, base_url: str | None = None):
        self.root = root or settings.blob_dir
        self.base_url = base_url if base_url is not None else settings.blob_base_url

    def _path(self, ref: str) -> Path | None:
        if not _REF_PATTERN.match(ref):
            return None
        return self.root / ref

    def store(self, data: bytes, content_type: str) -> str:
        """Write image bytes and return their reference."""
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationFailed(f"Unsupported image type: {content_type}")
        if not data:
            raise ValidationFailed("Image is empty")
        if len(data) > MAX_BLOB_BYTES:
            raise ValidationFailed("Image is larger than 10 MB")

        extension = (mimetypes.guess_extension(content_type) or ".bin").lstrip(".")
        ref = f"{new_id()}.{extension}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / ref).write_bytes(data)
        except OSError as exc:
            logger.error(f"❌ Blob write failed: {exc}")
            raise UpstreamFailure("Could not store image") from exc

        logger.debug(f"Stored blob {ref} ({len(data)} bytes)")
        return ref

    def get_url(self, ref: str) -> str | None:
        """Resolve a reference, None when it is malformed or missing."""
        path = self._path(ref)
        if path is None or not path.exists():
            return None
        if self.base_url:
            return f"{self.base_url.rstrip('/')}/{ref}"
        return path.resolve().as_uri()


__all__ = ["LocalBlobStore", "ALLOWED_CONTENT_TYPES", "MAX_BLOB_BYTES"]
