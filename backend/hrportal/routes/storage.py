from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from hrportal.core.dependencies import get_current_user
from hrportal.models.user import User
from hrportal.services.storage_service import (
    build_object_path,
    ensure_owner_path,
    get_public_url,
    read_upload,
    upload_object,
)

router = APIRouter(prefix="/storage", tags=["Storage"])


@router.post("/{bucket}", status_code=status.HTTP_201_CREATED)
def upload_file(
    bucket: str,
    file: UploadFile = File(...),
    path: str | None = Form(default=None),
    upsert: bool = Form(default=False),
    current_user: User = Depends(get_current_user)
):
    # objects live under the uploader's id folder
    if path:
        object_path = ensure_owner_path(path, current_user.id)
    else:
        object_path = build_object_path(current_user.id, file.filename)

    object_path = upload_object(
        bucket,
        object_path,
        read_upload(file),
        file.content_type,
        upsert=upsert
    )
    return {
        "bucket": bucket,
        "path": object_path,
        "public_url": get_public_url(bucket, object_path)
    }
