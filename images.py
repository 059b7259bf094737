import logging
import os
from typing import Dict, Optional
from uuid import uuid4

from fastapi import HTTPException, UploadFile
from werkzeug.utils import secure_filename

from config import ALLOWED_IMAGE_EXTENSIONS, MAX_UPLOAD_SIZE_MB, UPLOAD_DIR, UPLOAD_URL_PREFIX

logger = logging.getLogger("storefront.images")


def ensure_upload_dir(folder: str = "products") -> str:
    path = os.path.join(UPLOAD_DIR, folder)
    os.makedirs(path, exist_ok=True)
    return path


def allowed_image_extension(filename: str) -> bool:
    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    return bool(extension) and extension in ALLOWED_IMAGE_EXTENSIONS


def build_upload_url(public_id: str) -> str:
    return f"{UPLOAD_URL_PREFIX.rstrip('/')}/{public_id}"


def save_image(upload: UploadFile, folder: str = "products") -> Dict[str, str]:
    original_filename = secure_filename(upload.filename or "")
    if not original_filename:
        raise HTTPException(status_code=400, detail="Please choose a valid file name")
    if not allowed_image_extension(original_filename):
        raise HTTPException(status_code=400,
                            detail="Unsupported image format. Upload PNG, JPG, JPEG, GIF, or WEBP files")

    limit = MAX_UPLOAD_SIZE_MB * 1024 * 1024
    content = upload.file.read(limit + 1)
    if len(content) > limit:
        raise HTTPException(status_code=400, detail=f"Image exceeds {MAX_UPLOAD_SIZE_MB}MB")

    extension = os.path.splitext(original_filename)[1].lower()
    unique_filename = f"{uuid4().hex}{extension}"
    destination = os.path.join(ensure_upload_dir(folder), unique_filename)
    with open(destination, "wb") as fh:
        fh.write(content)

    public_id = f"{folder}/{unique_filename}"
    logger.info("Stored image %s (%d bytes)", public_id, len(content))
    return {"url": build_upload_url(public_id), "public_id": public_id, "filename": original_filename}


def resolve_public_id(public_id: str) -> Optional[str]:
    """Map a public id back to a path inside the upload folder, or None if it escapes it."""
    root = os.path.realpath(UPLOAD_DIR)
    target = os.path.realpath(os.path.join(root, public_id))
    if os.path.commonpath([root, target]) != root or target == root:
        return None
    return target


def delete_image(public_id: str) -> bool:
    target = resolve_public_id(public_id)
    if target is None or not os.path.isfile(target):
        return False
    os.remove(target)
    logger.info("Deleted image %s", public_id)
    return True
