"""
Customer uploads

Print files go to `<orders folder>/<user_id>/<session>-<generated name>` and
are private; callers get presigned URLs back. Review photos are public and
live under `<images folder>/reviews/<user_id>[/<product_id>]`.
"""
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from printshop.models import Product, User
from printshop.services.storage import (
    ORDER_FILE_MAX_BYTES, ORDER_FILES_PER_REQUEST, REVIEW_IMAGE_MAX_BYTES, REVIEW_IMAGES_PER_REQUEST,
    ObjectStorage, check_order_file, check_review_image, check_session_id, generate_filename, get_storage,
    read_upload,
)
from printshop.utils.database import get_db
from printshop.utils.errors import ForbiddenError, NotFoundError, ValidationError
from printshop.utils.response import send_success
from printshop.utils.security import get_current_user

router = APIRouter(prefix="/upload", tags=["upload"])


def _store_order_file(storage: ObjectStorage, user: User, upload: UploadFile, session_id: str) -> dict:
    data = read_upload(upload, check_order_file, ORDER_FILE_MAX_BYTES)

    filename = f"{session_id}-{generate_filename(upload.filename, 'design')}"
    key = storage.upload(data, storage.orders_folder, str(user.user_id), filename, upload.content_type)
    return {
        "key": key,
        "url": storage.presigned_url(key),
        "filename": filename,
        "size": len(data),
        "mimetype": upload.content_type,
    }


def _own_key(storage: ObjectStorage, user: User, file_key: str) -> str:
    if not file_key:
        raise ValidationError("File key is required")
    if not file_key.startswith(storage.order_file_prefix(user.user_id)) or ".." in file_key:
        raise ForbiddenError("Not authorized to access this file")
    return file_key


@router.post("/order-file")
def upload_order_file(file: Optional[UploadFile] = File(None), session_id: Optional[str] = Form(None),
                      user: User = Depends(get_current_user), storage: ObjectStorage = Depends(get_storage)):
    if file is None:
        raise ValidationError("No file uploaded")
    session_id = check_session_id(session_id) if session_id else str(uuid.uuid4())
    result = _store_order_file(storage, user, file, session_id)
    return send_success(result, "File uploaded successfully", 201)


@router.post("/order-files")
def upload_order_files(files: List[UploadFile] = File(None), session_id: Optional[str] = Form(None),
                       user: User = Depends(get_current_user), storage: ObjectStorage = Depends(get_storage)):
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > ORDER_FILES_PER_REQUEST:
        raise ValidationError(f"Maximum {ORDER_FILES_PER_REQUEST} files allowed per upload")

    session_id = check_session_id(session_id) if session_id else str(uuid.uuid4())
    results = [_store_order_file(storage, user, upload, session_id) for upload in files]
    return send_success({"files": results, "session_id": session_id}, "Files uploaded successfully", 201)


@router.get("/order-file/{file_key:path}")
def get_order_file(file_key: str, user: User = Depends(get_current_user),
                   storage: ObjectStorage = Depends(get_storage)):
    key = _own_key(storage, user, file_key)
    return send_success({"url": storage.presigned_url(key)}, "File URL generated successfully")


@router.delete("/order-file/{file_key:path}")
def delete_order_file(file_key: str, user: User = Depends(get_current_user),
                      storage: ObjectStorage = Depends(get_storage)):
    key = _own_key(storage, user, file_key)
    storage.delete(key)
    return send_success(None, "File deleted successfully")


@router.post("/review-images")
def upload_review_images(files: List[UploadFile] = File(None), product_id: Optional[int] = Form(None),
                         user: User = Depends(get_current_user), db: Session = Depends(get_db),
                         storage: ObjectStorage = Depends(get_storage)):
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > REVIEW_IMAGES_PER_REQUEST:
        raise ValidationError(f"Maximum {REVIEW_IMAGES_PER_REQUEST} images allowed per review")
    if product_id is not None and db.get(Product, product_id) is None:
        raise NotFoundError("Product not found")

    contents = [read_upload(upload, check_review_image, REVIEW_IMAGE_MAX_BYTES) for upload in files]
    subfolder = f"reviews/{user.user_id}" + (f"/{product_id}" if product_id is not None else "")

    results = []
    for index, (upload, data) in enumerate(zip(files, contents)):
        filename = f"{index}-{generate_filename(upload.filename, 'review')}"
        key = storage.upload(data, storage.images_folder, subfolder, filename, upload.content_type)
        results.append({
            "key": key,
            "url": storage.public_url(key),
            "filename": filename,
            "size": len(data),
            "mimetype": upload.content_type,
        })
    return send_success({"files": results}, "Review images uploaded successfully", 201)
