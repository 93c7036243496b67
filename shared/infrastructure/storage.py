"""
Object storage for product and promotion images.

StorageClient owns object naming and public URLs; the bucket operations go
through a backend so tests can substitute an in-memory one. The production
backend is Firebase Storage via firebase-admin (a google-cloud-storage bucket).

Object paths:
    products/<sanitized_product_id>_<8 hex>.jpg   (ingested from a URL)
    products/<unix>_<sanitized_filename>          (direct upload)
    promotions/<unix>_<sanitized_filename>        (direct upload)

Public URL: https://storage.googleapis.com/<bucket>/<object_path>
"""

from __future__ import annotations

import time
import uuid
from typing import Protocol

from shared.config.constants import STORAGE_PUBLIC_HOST
from shared.config.logging import storage_logger as logger
from shared.config.settings import Settings
from shared.utils.validators import sanitize_filename


class StorageError(Exception):
    """Object storage operation failed."""


class StorageBackend(Protocol):
    """Minimal bucket operations used by StorageClient."""

    def upload(self, object_path: str, data: bytes, content_type: str) -> None:
        """Write and finalize an object."""
        ...

    def make_public(self, object_path: str) -> None:
        """Grant public read on an object."""
        ...

    def delete(self, object_path: str) -> None:
        ...


class FirebaseStorageBackend:
    """Bucket operations through firebase-admin / google-cloud-storage."""

    def __init__(self, bucket_name: str, credentials: dict | str | None = None):
        import firebase_admin
        from firebase_admin import credentials as fb_credentials
        from firebase_admin import storage

        if not firebase_admin._apps:
            if credentials:
                cred = fb_credentials.Certificate(credentials)
            else:
                cred = fb_credentials.ApplicationDefault()
            firebase_admin.initialize_app(cred, {"storageBucket": bucket_name})
            logger.info("Firebase Admin SDK initialized", bucket=bucket_name)
        self._bucket = storage.bucket(bucket_name)

    def upload(self, object_path: str, data: bytes, content_type: str) -> None:
        blob = self._bucket.blob(object_path)
        blob.upload_from_string(data, content_type=content_type)

    def make_public(self, object_path: str) -> None:
        self._bucket.blob(object_path).make_public()

    def delete(self, object_path: str) -> None:
        self._bucket.blob(object_path).delete()


class StorageClient:
    """
    Image storage facade. Thread-safe as long as the backend is; one
    instance is shared process-wide.
    """

    def __init__(self, backend: StorageBackend, bucket_name: str):
        if not bucket_name:
            raise StorageError("FIREBASE_STORAGE_BUCKET not set")
        self._backend = backend
        self._bucket_name = bucket_name

    @classmethod
    def from_settings(cls, cfg: Settings) -> "StorageClient | None":
        """Build the Firebase-backed client, or None when storage is not configured."""
        if not cfg.firebase_storage_bucket:
            return None
        backend = FirebaseStorageBackend(
            cfg.firebase_storage_bucket, cfg.load_google_credentials()
        )
        return cls(backend, cfg.firebase_storage_bucket)

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    def public_url(self, object_path: str) -> str:
        return f"https://{STORAGE_PUBLIC_HOST}/{self._bucket_name}/{object_path}"

    def extract_object_path(self, path_or_url: str) -> str:
        """
        Object path from either a bare path or a public URL.

        For URLs the path is everything after the bucket segment.
        """
        value = path_or_url.strip()
        if not value.startswith(("http://", "https://")):
            return value.lstrip("/")
        marker = f"/{self._bucket_name}/"
        idx = value.find(marker)
        if idx < 0:
            raise StorageError(f"URL does not belong to bucket {self._bucket_name}: {value}")
        path = value[idx + len(marker):]
        return path.split("?", 1)[0]

    def owns_url(self, url: str) -> bool:
        """True when the URL points into this client's bucket."""
        return f"{STORAGE_PUBLIC_HOST}/{self._bucket_name}/" in url

    def _put(self, object_path: str, data: bytes, content_type: str) -> str:
        try:
            self._backend.upload(object_path, data, content_type)
        except Exception as e:
            raise StorageError(f"failed to upload {object_path}: {e}") from e

        # Public ACL only after the upload is finalized; failure is not fatal
        try:
            self._backend.make_public(object_path)
        except Exception as e:
            logger.warning("Failed to set public ACL", object_path=object_path, error=str(e))

        return self.public_url(object_path)

    def product_image_path(self, product_id: str) -> str:
        return f"products/{sanitize_filename(str(product_id))}_{uuid.uuid4().hex[:8]}.jpg"

    def upload_product_image(self, data: bytes, filename: str, content_type: str) -> str:
        """Store a directly uploaded product image and return its public URL."""
        object_path = f"products/{int(time.time())}_{sanitize_filename(filename)}"
        return self._put(object_path, data, content_type)

    def upload_promotion_image(self, data: bytes, filename: str, content_type: str) -> str:
        """Store a promotion banner and return its public URL."""
        object_path = f"promotions/{int(time.time())}_{sanitize_filename(filename)}"
        return self._put(object_path, data, content_type)

    def upload_ingested_image(self, product_id: str, data: bytes, content_type: str) -> str:
        """Store an image downloaded for a product and return its public URL."""
        return self._put(self.product_image_path(product_id), data, content_type)

    def delete_file(self, path_or_url: str) -> None:
        """Delete an object given its path or public URL."""
        object_path = self.extract_object_path(path_or_url)
        try:
            self._backend.delete(object_path)
        except Exception as e:
            raise StorageError(f"failed to delete object {object_path}: {e}") from e
        logger.info("Deleted file from storage", object_path=object_path, bucket=self._bucket_name)
