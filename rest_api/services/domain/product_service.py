"""
Product Service - global catalog management.

Handles:
- Product CRUD with catalog invariants
- Franchise assignment (FranchiseProduct upsert)
- Image list maintenance
- Safe delete: products and images still referenced by orders are kept

Usage:
    from rest_api.services.domain import ProductService

    service = ProductService(db, storage)
    product = service.create(body, actor_email="admin@grabbi.com")
    service.delete(product.id, actor_email="admin@grabbi.com")
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import (
    CartItem,
    Category,
    Franchise,
    FranchiseProduct,
    OrderItem,
    Product,
    ProductImage,
    Subcategory,
    new_entity,
)
from shared.config.constants import Limits, ProductStatus
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.infrastructure.storage import StorageClient, StorageError
from shared.utils.admin_schemas import ProductCreate, ProductExportRow, ProductUpdate
from shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    NotFoundError,
    ValidationError,
)
from shared.utils.validators import escape_like_pattern, sanitize_search_term

logger = get_logger(__name__)

SKU_PREFIX = "GRB-"


# =============================================================================
# Invariants and reference checks
# =============================================================================


def product_invariant_errors(values: Mapping[str, Any]) -> dict[str, str]:
    """
    Field -> message for every catalog invariant the values break.

    retail_price > 0, cost_price >= 0, age-restricted products need a
    minimum_age of at least 1, and a promotion price must undercut the
    retail price.
    """
    errors: dict[str, str] = {}
    retail = values.get("retail_price")
    cost = values.get("cost_price")
    promo = values.get("promotion_price")

    if retail is None or retail <= 0:
        errors["retail_price"] = "retail_price must be greater than 0"
    if cost is None or cost < 0:
        errors["cost_price"] = "cost_price must be at least 0"
    if values.get("is_age_restricted") and (values.get("minimum_age") or 0) < 1:
        errors["minimum_age"] = "minimum_age must be at least 1 for age-restricted products"
    if promo is not None and retail is not None and retail > 0 and promo >= retail:
        errors["promotion_price"] = "promotion_price must be lower than retail_price"
    return errors


def validate_product_invariants(values: Mapping[str, Any]) -> None:
    """Raise ValidationError for the first broken invariant."""
    errors = product_invariant_errors(values)
    if errors:
        raise ValidationError(next(iter(errors.values())), fields=list(errors))


def product_values(product: Product) -> dict[str, Any]:
    return {
        "retail_price": product.retail_price,
        "cost_price": product.cost_price,
        "promotion_price": product.promotion_price,
        "is_age_restricted": product.is_age_restricted,
        "minimum_age": product.minimum_age,
    }


def generate_sku() -> str:
    return f"{SKU_PREFIX}{uuid.uuid4().hex[:8].upper()}"


def order_reference_count(db: Session, product_id: uuid.UUID) -> int:
    """Number of distinct orders containing the product."""
    return db.scalar(
        select(func.count(func.distinct(OrderItem.order_id))).where(
            OrderItem.product_id == product_id
        )
    ) or 0


def image_reference_count(db: Session, image_url: str) -> int:
    """Number of order lines whose image snapshot points at the URL."""
    return db.scalar(
        select(func.count(OrderItem.id)).where(OrderItem.image_url == image_url)
    ) or 0


def purge_stored_images(db: Session, storage: StorageClient | None, urls: Iterable[str]) -> int:
    """
    Delete image objects from storage unless an order still shows them.

    Call after the owning transaction committed. Failures are logged, not
    raised. Returns the number of objects deleted.
    """
    if storage is None:
        return 0
    deleted = 0
    for url in urls:
        if not storage.owns_url(url):
            continue
        refs = image_reference_count(db, url)
        if refs:
            logger.info("Keeping image referenced by orders", image_url=url, references=refs)
            continue
        try:
            storage.delete_file(url)
            deleted += 1
        except StorageError as e:
            logger.warning("Failed to delete image from storage", image_url=url, error=str(e))
    return deleted


def replace_product_images(
    db: Session, product: Product, urls: Sequence[str]
) -> tuple[list[str], bool]:
    """
    Make the product's image list equal to urls (first one primary).

    Returns (removed_urls, changed). Removed rows are deleted immediately;
    the stored objects are left for purge_stored_images.
    """
    wanted = list(dict.fromkeys(u for u in urls if u))
    current = {img.image_url: img for img in product.images}
    removed = [url for url in current if url not in wanted]
    changed = bool(removed)

    for url in removed:
        image = current[url]
        product.images.remove(image)
        db.delete(image)

    for position, url in enumerate(wanted):
        is_primary = position == 0
        image = current.get(url)
        if image is None:
            product.images.append(
                new_entity(ProductImage, product_id=product.id, image_url=url, is_primary=is_primary)
            )
            changed = True
        elif image.is_primary != is_primary:
            image.is_primary = is_primary
            changed = True

    return removed, changed


def upsert_franchise_product(
    db: Session,
    franchise_id: uuid.UUID,
    product_id: uuid.UUID,
    stock_quantity: int,
    reorder_level: int,
    is_available: bool,
) -> FranchiseProduct:
    """Create or refresh one franchise listing."""
    listing = db.scalar(
        select(FranchiseProduct).where(
            FranchiseProduct.franchise_id == franchise_id,
            FranchiseProduct.product_id == product_id,
        )
    )
    if listing is None:
        listing = new_entity(
            FranchiseProduct,
            franchise_id=franchise_id,
            product_id=product_id,
            stock_quantity=stock_quantity,
            reorder_level=reorder_level,
            is_available=is_available,
        )
        db.add(listing)
    else:
        listing.stock_quantity = stock_quantity
        listing.reorder_level = reorder_level
        listing.is_available = is_available
    return listing


def soft_delete_product(db: Session, product: Product, actor_email: str | None) -> list[str]:
    """
    Soft-delete a product nobody has ordered.

    Drops its franchise listings, cart lines and image rows. Returns the
    image URLs to purge from storage after commit.

    Raises:
        ConflictError: The product appears in at least one order.
    """
    refs = order_reference_count(db, product.id)
    if refs:
        raise ConflictError(
            f"Product is referenced by {refs} orders and cannot be deleted",
            product_id=str(product.id),
            references=refs,
        )

    urls = [img.image_url for img in product.images]
    for image in list(product.images):
        product.images.remove(image)
        db.delete(image)
    db.execute(delete(FranchiseProduct).where(FranchiseProduct.product_id == product.id))
    db.execute(delete(CartItem).where(CartItem.product_id == product.id))
    product.soft_delete()
    product.deleted_by = actor_email
    return urls


# =============================================================================
# Service
# =============================================================================


class ProductService:
    """
    Service for catalog product management.

    Business rules:
    - SKU is unique across live and deleted products; empty SKUs are generated
    - Products belong to an active category and optional subcategory
    - Products appear in franchises through FranchiseProduct listings
    - Delete is refused while any order references the product
    """

    def __init__(self, db: Session, storage: StorageClient | None = None):
        self._db = db
        self._storage = storage

    # =========================================================================
    # Query Methods
    # =========================================================================

    def list(
        self,
        *,
        category_id: uuid.UUID | None = None,
        search: str | None = None,
        status: str | None = None,
        franchise_id: uuid.UUID | None = None,
        limit: int = Limits.DEFAULT_PAGE_SIZE,
        offset: int = Limits.DEFAULT_OFFSET,
    ) -> tuple[list[Product], int]:
        """Live products with optional filters. Returns (page, total)."""
        limit = min(max(1, limit), Limits.MAX_PAGE_SIZE)
        offset = max(0, offset)

        query = select(Product).where(Product.deleted_at.is_(None))
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if status:
            query = query.where(Product.status == status)
        if franchise_id is not None:
            query = query.where(
                Product.id.in_(
                    select(FranchiseProduct.product_id).where(
                        FranchiseProduct.franchise_id == franchise_id
                    )
                )
            )
        term = sanitize_search_term(search)
        if term:
            pattern = f"%{escape_like_pattern(term.lower())}%"
            query = query.where(
                or_(
                    func.lower(Product.item_name).like(pattern, escape="\\"),
                    func.lower(Product.sku).like(pattern, escape="\\"),
                )
            )

        total = self._db.scalar(select(func.count()).select_from(query.subquery())) or 0
        items = self._db.scalars(
            query.options(selectinload(Product.images))
            .order_by(Product.item_name)
            .limit(limit)
            .offset(offset)
        ).all()
        return list(items), total

    def get(self, product_id: uuid.UUID) -> Product:
        product = self._db.scalar(
            select(Product)
            .where(Product.id == product_id, Product.deleted_at.is_(None))
            .options(selectinload(Product.images))
        )
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    def list_franchise_ids(self, product_id: uuid.UUID) -> list[uuid.UUID]:
        return list(
            self._db.scalars(
                select(FranchiseProduct.franchise_id).where(
                    FranchiseProduct.product_id == product_id
                )
            ).all()
        )

    def export(self) -> list[ProductExportRow]:
        """
        Every live product for spreadsheet export, unpaged.

        franchise_names and franchise_ids list the franchises carrying the
        product, one per line; the bulk import reads franchise_ids in that
        form.
        """
        products = self._db.scalars(
            select(Product)
            .where(Product.deleted_at.is_(None))
            .options(
                selectinload(Product.images),
                selectinload(Product.category),
                selectinload(Product.subcategory),
            )
            .order_by(Product.item_name)
        ).all()

        listed: dict[uuid.UUID, list[tuple[uuid.UUID, str]]] = {}
        rows = self._db.execute(
            select(FranchiseProduct.product_id, Franchise.id, Franchise.name)
            .join(Franchise, Franchise.id == FranchiseProduct.franchise_id)
            .where(Franchise.deleted_at.is_(None))
            .order_by(Franchise.name)
        ).all()
        for product_id, franchise_id, franchise_name in rows:
            listed.setdefault(product_id, []).append((franchise_id, franchise_name))

        return [
            ProductExportRow.model_validate(product).model_copy(
                update={
                    "category_name": product.category.name if product.category else "",
                    "subcategory_name": product.subcategory.name if product.subcategory else "",
                    "franchise_names": "\n".join(name for _, name in listed.get(product.id, [])),
                    "franchise_ids": "\n".join(str(fid) for fid, _ in listed.get(product.id, [])),
                }
            )
            for product in products
        ]

    # =========================================================================
    # Validation helpers
    # =========================================================================

    def _require_category(self, category_id: uuid.UUID) -> Category:
        category = self._db.scalar(
            select(Category).where(Category.id == category_id, Category.deleted_at.is_(None))
        )
        if category is None:
            raise ValidationError("Invalid category_id", category_id=str(category_id))
        return category

    def _require_subcategory(self, subcategory_id: uuid.UUID, category_id: uuid.UUID) -> None:
        sub = self._db.scalar(
            select(Subcategory).where(
                Subcategory.id == subcategory_id,
                Subcategory.category_id == category_id,
                Subcategory.deleted_at.is_(None),
            )
        )
        if sub is None:
            raise ValidationError("Invalid subcategory_id", subcategory_id=str(subcategory_id))

    def _ensure_unique(self, field: str, value: str | None, exclude_id: uuid.UUID | None = None) -> None:
        if not value:
            return
        column = getattr(Product, field)
        query = select(Product.id).where(column == value)
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Product", f"{field} {value}")

    def _assign_franchises(
        self, product: Product, franchise_ids: Sequence[uuid.UUID]
    ) -> None:
        wanted = set(franchise_ids)
        if wanted:
            found = set(
                self._db.scalars(
                    select(Franchise.id).where(
                        Franchise.id.in_(wanted), Franchise.deleted_at.is_(None)
                    )
                ).all()
            )
            missing = wanted - found
            if missing:
                raise ValidationError("Franchise not found", franchise_ids=[str(m) for m in missing])

        stale = delete(FranchiseProduct).where(FranchiseProduct.product_id == product.id)
        if wanted:
            stale = stale.where(FranchiseProduct.franchise_id.not_in(wanted))
        self._db.execute(stale)
        for franchise_id in wanted:
            upsert_franchise_product(
                self._db,
                franchise_id,
                product.id,
                stock_quantity=product.stock_quantity,
                reorder_level=product.reorder_level,
                is_available=product.status == ProductStatus.ACTIVE,
            )

    # =========================================================================
    # Mutations
    # =========================================================================

    def create(self, body: ProductCreate, actor_email: str | None = None) -> Product:
        data = body.model_dump(exclude={"image_urls", "franchise_ids"})
        data["sku"] = (data.get("sku") or "").strip() or generate_sku()
        data["barcode"] = (data.get("barcode") or "").strip() or None

        validate_product_invariants(data)
        self._require_category(body.category_id)
        if body.subcategory_id is not None:
            self._require_subcategory(body.subcategory_id, body.category_id)
        self._ensure_unique("sku", data["sku"])
        self._ensure_unique("barcode", data["barcode"])

        product = new_entity(Product, **data)
        self._db.add(product)
        self._db.flush()

        replace_product_images(self._db, product, body.image_urls)
        if body.franchise_ids:
            self._assign_franchises(product, body.franchise_ids)

        safe_commit(self._db)
        self._db.refresh(product)
        logger.info("PRODUCT_CREATED", product_id=str(product.id), sku=product.sku, by=actor_email)
        return product

    def update(self, product_id: uuid.UUID, body: ProductUpdate, actor_email: str | None = None) -> Product:
        product = self.get(product_id)
        changes = body.model_dump(exclude_unset=True, exclude={"image_urls", "franchise_ids"})

        if "sku" in changes:
            changes["sku"] = changes["sku"].strip()
            self._ensure_unique("sku", changes["sku"], exclude_id=product.id)
        if "barcode" in changes:
            changes["barcode"] = (changes["barcode"] or "").strip() or None
            self._ensure_unique("barcode", changes["barcode"], exclude_id=product.id)

        merged = product_values(product)
        merged.update({k: v for k, v in changes.items() if k in merged})
        validate_product_invariants(merged)

        category_id = changes.get("category_id") or product.category_id
        if "category_id" in changes:
            if changes["category_id"] is None:
                raise ValidationError("category_id is required")
            self._require_category(category_id)
        if changes.get("subcategory_id") is not None:
            self._require_subcategory(changes["subcategory_id"], category_id)

        for key, value in changes.items():
            setattr(product, key, value)
        product.touch()

        removed: list[str] = []
        if body.image_urls is not None:
            removed, _ = replace_product_images(self._db, product, body.image_urls)
        if body.franchise_ids is not None:
            self._assign_franchises(product, body.franchise_ids)

        safe_commit(self._db)
        purge_stored_images(self._db, self._storage, removed)
        self._db.refresh(product)
        logger.info("PRODUCT_UPDATED", product_id=str(product.id), fields=list(changes), by=actor_email)
        return product

    def delete(self, product_id: uuid.UUID, actor_email: str | None = None) -> None:
        """Safe delete. 409 while any order references the product."""
        product = self.get(product_id)
        urls = soft_delete_product(self._db, product, actor_email)
        safe_commit(self._db)
        purge_stored_images(self._db, self._storage, urls)
        logger.info("PRODUCT_DELETED", product_id=str(product_id), by=actor_email)
