"""
Recipe photo upload, listing and removal.
"""

from __future__ import annotations

import io
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from PIL import Image

from recipebox.access import require_recipe_access
from recipebox.auth import AuthUser
from recipebox.config import get_settings
from recipebox.db import DbClient, PhotoRecord
from recipebox.dependencies import get_current_user, get_db_client, get_storage_client
from recipebox.schemas import ListPhotosResponse, PhotoResponse, StatusResponse
from recipebox.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PHOTO_BYTES = 15 * 1024 * 1024
HEIC_CONTENT_TYPES = ("image/heic", "image/heif")
HEIC_EXTENSIONS = (".heic", ".heif")
FORMAT_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "GIF": "gif", "WEBP": "webp"}


def _to_photo_response(photo: PhotoRecord, storage: StorageClient) -> PhotoResponse:
    url = None
    if photo.storage_path:
        url = storage.presign_get(
            photo.storage_path, expires_in=get_settings().photo_url_expires_in
        )
    return PhotoResponse(
        id=photo.id,
        recipe_id=photo.recipe_id,
        user_id=photo.user_id,
        storage_path=photo.storage_path,
        url=url,
        created_at=photo.created_at,
    )


def _is_heic(file: UploadFile) -> bool:
    content_type = (file.content_type or "").lower()
    filename = (file.filename or "").lower()
    return content_type in HEIC_CONTENT_TYPES or filename.endswith(HEIC_EXTENSIONS)


def identify_image(data: bytes) -> str:
    """Returns the Pillow format name of the image, or raises a 400 or 413."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
            image_format = image.format
    except Image.DecompressionBombError:
        raise HTTPException(status_code=413, detail="Photo dimensions are too large.")
    except (OSError, SyntaxError, ValueError):
        image_format = None
    if not image_format:
        raise HTTPException(status_code=400, detail="Upload is not a supported image.")
    return image_format


@router.get("/recipes/{recipe_id}/photos", response_model=ListPhotosResponse)
def list_photos(
    recipe_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    recipe, _ = require_recipe_access(db, recipe_id, user.id)
    return ListPhotosResponse(
        photos=[
            _to_photo_response(photo, storage)
            for photo in db.list_photos(recipe.id)
            if photo.storage_path
        ]
    )


@router.post(
    "/recipes/{recipe_id}/photos", response_model=PhotoResponse, status_code=201
)
def upload_photo(
    recipe_id: str,
    file: UploadFile = File(...),
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    recipe, _ = require_recipe_access(db, recipe_id, user.id, edit=True)
    if _is_heic(file):
        raise HTTPException(
            status_code=415, detail="HEIC photos are not supported; upload JPEG or PNG."
        )
    data = file.file.read(MAX_PHOTO_BYTES + 1)
    if not data:
        raise HTTPException(status_code=400, detail="Empty upload.")
    if len(data) > MAX_PHOTO_BYTES:
        raise HTTPException(status_code=413, detail="Photo is too large.")
    image_format = identify_image(data)
    extension = FORMAT_EXTENSIONS.get(image_format, image_format.lower())
    content_type = Image.MIME.get(image_format, "application/octet-stream")

    photo = db.create_photo(user.id, recipe.id)
    storage_path = f"{user.id}/{recipe.id}/{photo.id}.{extension}"
    try:
        storage.upload_bytes(storage_path, data, content_type)
    except Exception:
        logger.exception("Uploading photo %s for recipe %s failed", photo.id, recipe.id)
        db.delete_photo(photo.id)
        raise HTTPException(status_code=500, detail="Failed to upload photo.")
    photo = db.set_photo_path(photo.id, storage_path)
    return _to_photo_response(photo, storage)


@router.delete("/photos/{photo_id}", response_model=StatusResponse)
def delete_photo(
    photo_id: str,
    user: AuthUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    photo = db.get_photo(photo_id)
    if not photo:
        raise HTTPException(status_code=404, detail="Photo not found.")
    recipe, _ = require_recipe_access(db, photo.recipe_id, user.id, edit=True)
    if photo.storage_path:
        try:
            storage.delete([photo.storage_path])
        except Exception:
            logger.exception("Deleting photo object %s failed", photo.storage_path)
            raise HTTPException(status_code=500, detail="Failed to delete photo.")
    db.delete_photo(photo.id)
    if recipe.cover_photo_id == photo.id:
        db.update_recipe(recipe.id, {"cover_photo_id": None}, user_id=user.id)
    return StatusResponse(status="ok")
