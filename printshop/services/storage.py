"""
S3-compatible object storage for product images and customer print files
"""
import io
import os
import re
import secrets
import time
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from loguru import logger
from minio import Minio
from minio.commonconfig import CopySource
from minio.error import S3Error

from printshop.config import settings
from printshop.utils.errors import ForbiddenError, StorageError, ValidationError

MB = 1024 * 1024

IMAGE_EXTENSIONS = {"jpeg", "jpg", "png", "gif", "webp"}
IMAGE_MAX_BYTES = 10 * MB
IMAGES_PER_REQUEST = 10

REVIEW_IMAGE_EXTENSIONS = {"jpeg", "jpg", "png", "webp"}
REVIEW_IMAGE_MAX_BYTES = 5 * MB
REVIEW_IMAGES_PER_REQUEST = 5

ORDER_FILE_EXTENSIONS = {"pdf", "jpg", "jpeg", "png", "doc", "docx", "psd", "ai"}
ORDER_FILE_MIME = re.compile(
    r"pdf|image|document|application/msword|application/postscript|vnd\.adobe\.photoshop"
)
ORDER_FILE_MAX_BYTES = 50 * MB
ORDER_FILES_PER_REQUEST = 10

SESSION_ID = re.compile(r"^[A-Za-z0-9-]{1,64}$")

PRESIGNED_URL_SECONDS = 3600


def file_extension(filename: str) -> str:
    _, ext = os.path.splitext(filename or "")
    return ext.lstrip(".").lower()


def generate_filename(original_name: str, prefix: str = None) -> str:
    """Timestamped, collision-resistant name that keeps the original extension"""
    ext = file_extension(original_name)
    stamp = f"{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}"
    name = f"{prefix}-{stamp}" if prefix else stamp
    return f"{name}.{ext}" if ext else name


def check_image(filename: str, content_type: Optional[str], size: int, max_bytes: int = IMAGE_MAX_BYTES):
    ext = file_extension(filename)
    mime_ok = bool(content_type) and any(t in content_type.lower() for t in IMAGE_EXTENSIONS)
    if ext not in IMAGE_EXTENSIONS or not mime_ok:
        raise ValidationError("Only image files (JPG, JPEG, PNG, GIF, WebP) are allowed!")
    if size > max_bytes:
        raise ValidationError(f"Image exceeds the {max_bytes // MB}MB size limit")


def check_review_image(filename: str, content_type: Optional[str], size: int):
    if file_extension(filename) not in REVIEW_IMAGE_EXTENSIONS or content_type not in (
        "image/jpeg", "image/jpg", "image/png", "image/webp"
    ):
        raise ValidationError(f"Invalid file type: {content_type}. Only JPG, PNG, and WebP images are allowed.")
    if size > REVIEW_IMAGE_MAX_BYTES:
        raise ValidationError(f"File {filename} is too large. Maximum file size is 5MB.")


def check_order_file(filename: str, content_type: Optional[str], size: int):
    ext_ok = file_extension(filename) in ORDER_FILE_EXTENSIONS
    mime_ok = bool(content_type) and bool(ORDER_FILE_MIME.search(content_type.lower()))
    if not (ext_ok or mime_ok):
        raise ValidationError("Only PDF, image, or document files are allowed!")
    if size > ORDER_FILE_MAX_BYTES:
        raise ValidationError("File exceeds the 50MB size limit")


def read_upload(upload, check, max_bytes: int) -> bytes:
    """
    Validate an UploadFile and read it without buffering more than max_bytes + 1

    `check(filename, content_type, size)` runs first against the size the
    client declared, then against the number of bytes actually read.
    """
    check(upload.filename, upload.content_type, upload.size or 0)
    data = upload.file.read(max_bytes + 1)
    check(upload.filename, upload.content_type, len(data))
    return data


def check_session_id(session_id: str) -> str:
    if not SESSION_ID.match(session_id):
        raise ValidationError("Session ID may only contain letters, digits and hyphens")
    return session_id


class ObjectStorage:
    def __init__(self, client: Optional[Minio], bucket: str, endpoint: str, region: str = "us-east-1",
                 secure: bool = True, images_folder: str = "images", orders_folder: str = "orders-file"):
        self.client = client
        self.bucket = bucket
        self.endpoint = endpoint
        self.region = region
        self.secure = secure
        self.images_folder = images_folder
        self.orders_folder = orders_folder

    def _require_bucket(self):
        if not self.bucket or self.client is None:
            raise StorageError("Object storage bucket is not configured", status_code=500)

    def _translate(self, action: str, error: Exception) -> StorageError:
        logger.error(f"Storage {action} failed: {error}")
        code = getattr(error, "code", "") or ""
        if code in ("InvalidAccessKeyId", "SignatureDoesNotMatch"):
            return StorageError("Object storage authentication failed, check the access key and secret")
        if code == "NoSuchBucket":
            return StorageError(f'Bucket "{self.bucket}" not found, check S3_BUCKET')
        if code == "AccessDenied":
            return StorageError("Access denied to the storage bucket, check the credentials' permissions")
        return StorageError(f"Failed to {action} file: {error}")

    def upload(self, data: bytes, folder: str, subfolder: str, filename: str,
               content_type: str = "application/octet-stream") -> str:
        """Store bytes under `folder/subfolder/filename` and return that key"""
        self._require_bucket()
        key = "/".join(part.strip("/") for part in (folder, subfolder, filename) if part)
        try:
            self.client.put_object(
                bucket_name=self.bucket,
                object_name=key,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type or "application/octet-stream",
            )
        except S3Error as e:
            raise self._translate("upload", e)
        logger.info(f"Uploaded {key} ({len(data)} bytes)")
        return key

    def delete(self, key: str):
        self._require_bucket()
        try:
            self.client.remove_object(bucket_name=self.bucket, object_name=key)
        except S3Error as e:
            raise self._translate("delete", e)
        logger.info(f"Deleted {key}")

    def copy(self, source_key: str, destination_key: str) -> str:
        self._require_bucket()
        try:
            self.client.copy_object(
                bucket_name=self.bucket,
                object_name=destination_key,
                source=CopySource(self.bucket, source_key),
            )
        except S3Error as e:
            raise self._translate("copy", e)
        logger.info(f"Copied {source_key} -> {destination_key}")
        return destination_key

    def presigned_url(self, key: str, expires: int = PRESIGNED_URL_SECONDS) -> str:
        self._require_bucket()
        try:
            return self.client.presigned_get_object(
                bucket_name=self.bucket,
                object_name=key,
                expires=timedelta(seconds=expires),
            )
        except S3Error as e:
            raise self._translate("sign", e)

    def public_url(self, key: str) -> str:
        self._require_bucket()
        if self.endpoint.endswith("amazonaws.com"):
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.endpoint}/{self.bucket}/{key}"

    def extract_key(self, url: str) -> Optional[str]:
        """Storage key for a public URL or an already-bare key; None for foreign URLs"""
        if not url:
            return None
        if url.startswith(f"{self.images_folder}/") or url.startswith(f"{self.orders_folder}/"):
            return url
        if not self.bucket:
            return None

        match = re.match(rf"https://{re.escape(self.bucket)}\.s3[.-]([^.]+)\.amazonaws\.com/(.+)", url)
        if match:
            return match.group(2)

        for scheme in ("https", "http"):
            prefix = f"{scheme}://{self.endpoint}/{self.bucket}/"
            if url.startswith(prefix):
                return url[len(prefix):]
        return None

    def order_file_prefix(self, user_id: int) -> str:
        return f"{self.orders_folder}/{user_id}/"

    def owned_key(self, url: str, user_id: int) -> Optional[str]:
        """Key behind `url` if it is one of the user's own print files, else None"""
        key = self.extract_key(url)
        if not key or ".." in key or not key.startswith(self.order_file_prefix(user_id)):
            return None
        return key

    def claim_design_files(self, urls, user_id: int) -> list:
        """Drop blank entries and refuse any file outside the user's own prefix"""
        cleaned = [url.strip() for url in urls or [] if url and url.strip()]
        for url in cleaned:
            if self.owned_key(url, user_id) is None:
                raise ForbiddenError("Design files must be your own uploads")
        return cleaned

    def copy_to_order(self, url: str, user_id: int, order_id: int) -> str:
        """Copy a cart design file under `<orders folder>/<user_id>/order-<order_id>/`"""
        key = self.owned_key(url, user_id)
        if key is None:
            raise ForbiddenError("Design files must be your own uploads")
        destination = f"{self.order_file_prefix(user_id)}order-{order_id}/{key.rsplit('/', 1)[-1]}"
        return self.copy(key, destination)


@lru_cache(maxsize=1)
def get_storage() -> ObjectStorage:
    """FastAPI dependency returning the process-wide storage client"""
    client = None
    if settings.storage_configured:
        client = Minio(
            endpoint=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            secure=settings.s3_secure,
            region=settings.s3_region,
        )
    else:
        logger.warning("Object storage is not configured; file uploads will fail until S3_* is set")
    return ObjectStorage(
        client=client,
        bucket=settings.s3_bucket,
        endpoint=settings.s3_endpoint,
        region=settings.s3_region,
        secure=settings.s3_secure,
        images_folder=settings.s3_images_folder,
        orders_folder=settings.s3_orders_folder,
    )
