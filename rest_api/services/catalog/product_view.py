"""
Customer-facing product views.

Products are listed either globally (online-visible active products) or
for one franchise, in which case the franchise's FranchiseProduct rows
supply stock and price overrides.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import FranchiseProduct, Product
from rest_api.services.catalog.pricing import (
    is_available_globally,
    is_available_in_franchise,
    resolve_effective_price,
)
from shared.config.constants import Limits, ProductStatus
from shared.utils.exceptions import NotFoundError
from shared.utils.schemas import ProductImageOutput, ProductView
from shared.utils.validators import escape_like_pattern, sanitize_search_term


def build_product_view(
    product: Product,
    override: FranchiseProduct | None = None,
    now: datetime | None = None,
) -> ProductView:
    """Flatten a product (and optional franchise overlay) into a ProductView."""
    price = resolve_effective_price(product, override, now)
    if override is not None:
        stock = override.stock_quantity
        available = is_available_in_franchise(override)
    else:
        stock = product.stock_quantity
        available = is_available_globally(product)

    return ProductView(
        id=product.id,
        sku=product.sku,
        item_name=product.item_name,
        short_description=product.short_description,
        long_description=product.long_description,
        category_id=product.category_id,
        subcategory_id=product.subcategory_id,
        brand=product.brand,
        pack_size=product.pack_size,
        unit_of_measure=product.unit_of_measure,
        retail_price=price.retail_price,
        promotion_price=price.promotion_price,
        promotion_start=price.promotion_start,
        promotion_end=price.promotion_end,
        promotion_active=price.promotion_active,
        current_price=price.current_price,
        stock_quantity=stock,
        is_available=available,
        is_gluten_free=product.is_gluten_free,
        is_vegetarian=product.is_vegetarian,
        is_vegan=product.is_vegan,
        is_age_restricted=product.is_age_restricted,
        minimum_age=product.minimum_age,
        allergen_info=product.allergen_info,
        image_url=product.primary_image_url,
        images=[ProductImageOutput.model_validate(img) for img in product.images],
    )


def _apply_filters(query, category_id: uuid.UUID | None, search: str | None):
    if category_id is not None:
        query = query.where(Product.category_id == category_id)
    term = sanitize_search_term(search)
    if term:
        pattern = f"%{escape_like_pattern(term.lower())}%"
        query = query.where(func.lower(Product.item_name).like(pattern, escape="\\"))
    return query


def list_product_views(
    db: Session,
    franchise_id: uuid.UUID | None = None,
    category_id: uuid.UUID | None = None,
    search: str | None = None,
    limit: int = Limits.MAX_PAGE_SIZE,
    offset: int = 0,
) -> list[ProductView]:
    """
    Catalog listing.

    With a franchise: only products the franchise lists as available,
    priced with its overrides. Without: every online-visible active product.
    """
    if franchise_id is not None:
        query = (
            select(FranchiseProduct, Product)
            .join(Product, Product.id == FranchiseProduct.product_id)
            .where(
                FranchiseProduct.franchise_id == franchise_id,
                FranchiseProduct.is_available.is_(True),
                Product.deleted_at.is_(None),
                Product.status == ProductStatus.ACTIVE,
                Product.online_visible.is_(True),
            )
            .options(selectinload(Product.images))
        )
        query = _apply_filters(query, category_id, search)
        rows = db.execute(
            query.order_by(Product.item_name).limit(limit).offset(offset)
        ).all()
        return [build_product_view(product, override) for override, product in rows]

    query = (
        select(Product)
        .where(
            Product.deleted_at.is_(None),
            Product.status == ProductStatus.ACTIVE,
            Product.online_visible.is_(True),
        )
        .options(selectinload(Product.images))
    )
    query = _apply_filters(query, category_id, search)
    products = db.scalars(query.order_by(Product.item_name).limit(limit).offset(offset)).all()
    return [build_product_view(p) for p in products]


def get_product_view(
    db: Session, product_id: uuid.UUID, franchise_id: uuid.UUID | None = None
) -> ProductView:
    """Single product, with the franchise overlay when one is given."""
    product = db.scalar(
        select(Product)
        .where(Product.id == product_id, Product.deleted_at.is_(None))
        .options(selectinload(Product.images))
    )
    if product is None:
        raise NotFoundError("Product", product_id)

    override = None
    if franchise_id is not None:
        override = db.scalar(
            select(FranchiseProduct).where(
                FranchiseProduct.franchise_id == franchise_id,
                FranchiseProduct.product_id == product_id,
            )
        )
        if override is None:
            raise NotFoundError("Product", product_id, franchise_id=str(franchise_id))
    return build_product_view(product, override)
