"""
Image upload helpers shared by the admin and franchise-portal routers.

Images are validated (type, size) before they reach object storage.
"""

from fastapi import UploadFile

from rest_api.core.context import AppContext
from shared.config.logging import storage_logger as logger
from shared.infrastructure.storage import StorageError
from shared.utils.exceptions import ExternalServiceError, PayloadTooLargeError, ValidationError
from shared.utils.schemas import UploadResponse
from shared.utils.validators import validate_upload


def _read_image(file: UploadFile, max_bytes: int) -> tuple[bytes, str]:
    # One byte past the limit is enough to detect oversize files
    data = file.file.read(max_bytes + 1)
    try:
        content_type = validate_upload(file.content_type, len(data), max_bytes)
    except OverflowError:
        raise PayloadTooLargeError(max_bytes, filename=file.filename)
    except ValueError as e:
        raise ValidationError(str(e), content_type=file.content_type)
    if not data:
        raise ValidationError("file is empty")
    return data, content_type


def store_image(ctx: AppContext, file: UploadFile, kind: str) -> UploadResponse:
    """Validate and store one image; kind is "products" or "promotions"."""
    if ctx.storage is None:
        raise ExternalServiceError("Storage", is_unavailable=True)
    data, content_type = _read_image(file, ctx.settings.max_upload_bytes)
    filename = file.filename or "upload"
    try:
        if kind == "promotions":
            url = ctx.storage.upload_promotion_image(data, filename, content_type)
        else:
            url = ctx.storage.upload_product_image(data, filename, content_type)
    except StorageError as e:
        raise ExternalServiceError("Storage", error=str(e))

    logger.info("Image uploaded", kind=kind, size=len(data), url=url)
    return UploadResponse(url=url, path=ctx.storage.extract_object_path(url))
