import logging
import os
import uuid
from pathlib import Path, PurePosixPath

from fastapi import HTTPException, status

from hrportal.config import settings

logger = logging.getLogger(__name__)

BUCKETS = {
    "helpdesk-images": {"image/jpeg", "image/png", "image/webp", "application/pdf"},
    "employee-docs": {"image/jpeg", "image/png", "application/pdf"},
    "profile-images": {"image/jpeg", "image/png", "image/webp"},
}


def _bucket_root(bucket: str) -> Path:
    if bucket not in BUCKETS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bucket not found")
    return Path(settings.STORAGE_DIR) / bucket


def _safe_object_path(object_path: str) -> PurePosixPath:
    candidate = PurePosixPath(object_path)
    if candidate.is_absolute() or ".." in candidate.parts or not candidate.parts:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid object path")
    return candidate


def read_upload(upload) -> bytes:
    """Read at most one byte past ``MAX_UPLOAD_BYTES``."""
    content = upload.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File too large")
    return content


def ensure_owner_path(object_path: str, owner_id: int) -> str:
    relative = _safe_object_path(object_path)
    if relative.parts[0] != str(owner_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only write to your own folder"
        )
    return str(relative)


def build_object_path(owner_id: int, filename: str | None) -> str:
    extension = ""
    if filename and "." in filename:
        extension = "." + filename.rsplit(".", 1)[-1].lower()
    return f"{owner_id}/{uuid.uuid4().hex}{extension}"


def upload_object(
    bucket: str,
    object_path: str,
    content: bytes,
    content_type: str | None,
    upsert: bool = False,
) -> str:
    """Store ``content`` under ``bucket/object_path`` and return the object path."""
    root = _bucket_root(bucket)
    if content_type not in BUCKETS[bucket]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file type")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File too large")

    relative = _safe_object_path(object_path)
    target = root.joinpath(*relative.parts)
    if target.exists() and not upsert:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Object already exists")

    try:
        os.makedirs(target.parent, exist_ok=True)
        with open(target, "wb") as buffer:
            buffer.write(content)
    except OSError:
        logger.exception("Upload to %s/%s failed", bucket, object_path)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to store file. Please try again."
        )

    logger.info("Stored %s bytes at %s/%s", len(content), bucket, relative)
    return str(relative)


def get_public_url(bucket: str, object_path: str) -> str:
    _bucket_root(bucket)
    relative = _safe_object_path(object_path)
    base = settings.PUBLIC_BASE_URL.rstrip("/")
    return f"{base}/storage/{bucket}/{relative}"


def remove_object(bucket: str, object_path: str) -> bool:
    target = _bucket_root(bucket).joinpath(*_safe_object_path(object_path).parts)
    if not target.exists():
        return False
    target.unlink()
    return True
