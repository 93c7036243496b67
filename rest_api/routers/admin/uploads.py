"""
Image upload endpoints.
"""

from fastapi import APIRouter, Depends, File, UploadFile

from rest_api.core.context import AppContext, get_app_context
from rest_api.routers._common.uploads import store_image
from shared.utils.schemas import UploadResponse


router = APIRouter(tags=["admin-uploads"])


@router.post("/uploads/products", response_model=UploadResponse)
def upload_product_image(
    file: UploadFile = File(...),
    ctx: AppContext = Depends(get_app_context),
) -> UploadResponse:
    return store_image(ctx, file, "products")


@router.post("/uploads/promotions", response_model=UploadResponse)
def upload_promotion_image(
    file: UploadFile = File(...),
    ctx: AppContext = Depends(get_app_context),
) -> UploadResponse:
    return store_image(ctx, file, "promotions")
