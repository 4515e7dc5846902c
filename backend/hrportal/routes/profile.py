from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrportal.core.dependencies import get_current_user
from hrportal.database.session import get_db
from hrportal.models.user import User
from hrportal.schemas.user import ProfileResponse, ProfileUpdateSchema
from hrportal.services.storage_service import build_object_path, get_public_url, read_upload, upload_object
from hrportal.utils.errors import backend_unavailable

PROFILE_BUCKET = "profile-images"

router = APIRouter(prefix="/profile", tags=["Profile"])


# ---------------- GET PROFILE ----------------
@router.get("/", response_model=ProfileResponse)
def get_profile(
    current_user: User = Depends(get_current_user)
):
    return current_user


# ---------------- UPDATE PROFILE ----------------
@router.put("/", response_model=ProfileResponse)
def update_profile(
    data: ProfileUpdateSchema,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates and not updates["name"]:
        updates.pop("name")
    for field, value in updates.items():
        setattr(current_user, field, value)

    try:
        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError:
        raise backend_unavailable(db, "Profile update failed for user %s", current_user.id)

    return current_user


@router.post("/upload-image")
def upload_profile_image(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    object_path = upload_object(
        PROFILE_BUCKET,
        build_object_path(current_user.id, file.filename),
        read_upload(file),
        file.content_type
    )
    url = get_public_url(PROFILE_BUCKET, object_path)

    current_user.profile_image = url
    try:
        db.commit()
    except SQLAlchemyError:
        raise backend_unavailable(db, "Profile image update failed for user %s", current_user.id)

    return {
        "message": "Image uploaded successfully",
        "path": object_path,
        "url": url
    }
