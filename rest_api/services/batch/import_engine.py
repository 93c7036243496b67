"""
Asynchronous batch product import.

A job walks its rows one at a time on a worker thread with its own
database session, so progress moves forward one row at a time. Each row
commits on its own: a bad row is reported in the job's errors and the
next row carries on. Only infrastructure failures (database unreachable,
unexpected exceptions) end the job as failed.

Per row:
    1. validate required fields and catalog invariants
    2. resolve the product by id, then by SKU
    3. delete (safe delete) or create/update
    4. upsert franchise listings
    5. ingest images (per-URL errors never fail the row)

Imports from a franchise portal are confined to that franchise: rows must
name an existing catalog product, and only the franchise's own listing is
written. Deletes drop the listing, never the product.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from rest_api.models import (
    Category,
    Franchise,
    FranchiseProduct,
    Product,
    Subcategory,
    as_utc,
    new_entity,
)
from rest_api.services.batch.images import ImageIngestor
from rest_api.services.batch.job_store import BatchJob, JobError, JobStore
from rest_api.services.domain.product_service import (
    generate_sku,
    order_reference_count,
    product_invariant_errors,
    purge_stored_images,
    replace_product_images,
    soft_delete_product,
    upsert_franchise_product,
)
from shared.config.constants import JobStatus, Limits, ProductStatus
from shared.config.logging import batch_logger as logger
from shared.security.auth import TokenClaims
from shared.utils.schemas import ProductImportItem

# Product attributes copied verbatim from an import row
COPIED_FIELDS = (
    "item_name",
    "short_description",
    "long_description",
    "cost_price",
    "retail_price",
    "promotion_price",
    "gross_margin",
    "staff_discount",
    "tax_rate",
    "stock_quantity",
    "reorder_level",
    "shelf_location",
    "weight_volume",
    "unit_of_measure",
    "brand",
    "supplier",
    "country_of_origin",
    "is_gluten_free",
    "is_vegetarian",
    "is_vegan",
    "is_age_restricted",
    "minimum_age",
    "allergen_info",
    "storage_type",
    "is_own_brand",
    "online_visible",
    "status",
    "batch_number",
    "pack_size",
    "notes",
)

DATE_FIELDS = ("promotion_start", "promotion_end", "expiry_date")


def parse_import_date(value: str | None) -> datetime | None:
    """
    Parse 'YYYY-MM-DD' or an ISO-8601 timestamp into an aware UTC datetime.

    Raises:
        ValueError: Unrecognised format.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    try:
        day = date.fromisoformat(text)
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    except ValueError:
        pass
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_uuid(value: str | None) -> uuid.UUID | None:
    if value is None or not str(value).strip():
        return None
    return uuid.UUID(str(value).strip())


class _RowRejected(Exception):
    """A row that passed validation but cannot be applied."""

    def __init__(self, fields: dict[str, str]):
        super().__init__(fields)
        self.fields = fields


@dataclass
class _PreparedRow:
    """Validated row values ready to apply to a Product."""

    values: dict[str, Any]
    product_id: uuid.UUID | None
    sku: str


@dataclass
class _ImportContext:
    actor: TokenClaims | None
    categories: dict[uuid.UUID, Category]
    subcategories: dict[uuid.UUID, uuid.UUID]
    franchises: set[uuid.UUID]
    seen_ids: set[uuid.UUID] = field(default_factory=set)
    seen_skus: set[str] = field(default_factory=set)

    @property
    def scoped_franchise_id(self) -> uuid.UUID | None:
        """Franchise a franchise user's import is confined to; None for admins."""
        if self.actor is not None and self.actor.is_franchise_user:
            return self.actor.franchise_id
        return None


class BatchImportEngine:
    """
    Runs batch product imports against the job store.

    Usage:
        engine = BatchImportEngine(SessionLocal, job_store, ingestor)
        job = engine.submit(executor, request.products, request.delete_missing, claims)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        job_store: JobStore,
        ingestor: ImageIngestor | None = None,
    ):
        self._session_factory = session_factory
        self._jobs = job_store
        self._ingestor = ingestor

    # =========================================================================
    # Entry points
    # =========================================================================

    def submit(
        self,
        executor: Executor,
        items: Sequence[ProductImportItem],
        delete_missing: bool,
        actor: TokenClaims | None,
    ) -> BatchJob:
        """Register a job and hand it to the executor. Returns the job snapshot."""
        scoped = actor.franchise_id if actor is not None and actor.is_franchise_user else None
        job = self._jobs.create(total=len(items), franchise_id=scoped)
        executor.submit(self.run, job.id, list(items), delete_missing, actor)
        logger.info(
            "BATCH_IMPORT_SUBMITTED",
            job_id=str(job.id),
            total=len(items),
            delete_missing=delete_missing,
            actor=str(actor.user_id) if actor else None,
        )
        return job

    def run(
        self,
        job_id: uuid.UUID,
        items: Sequence[ProductImportItem],
        delete_missing: bool,
        actor: TokenClaims | None,
    ) -> None:
        """Process every row, then optional missing-product deletes, then close the job."""
        self._jobs.set_processing(job_id)
        try:
            db = self._session_factory()
            try:
                ctx = self._load_context(db, actor)
                for row, item in enumerate(items, start=1):
                    self._process_row(db, job_id, row, item, ctx)
                if delete_missing:
                    self._delete_missing(db, job_id, ctx)
            finally:
                db.close()
        except Exception as e:
            logger.error("BATCH_IMPORT_FAILED", job_id=str(job_id), error=str(e), exc_info=True)
            self._jobs.complete(job_id, JobStatus.FAILED)
            return

        self._jobs.complete(job_id, JobStatus.COMPLETED)
        snapshot = self._jobs.get(job_id)
        if snapshot is not None:
            logger.info(
                "BATCH_IMPORT_COMPLETED",
                job_id=str(job_id),
                created=snapshot.created,
                updated=snapshot.updated,
                deleted=snapshot.deleted,
                failed=snapshot.failed,
            )

    # =========================================================================
    # Setup
    # =========================================================================

    def _load_context(self, db: Session, actor: TokenClaims | None) -> _ImportContext:
        categories = {
            c.id: c
            for c in db.scalars(select(Category).where(Category.deleted_at.is_(None))).all()
        }
        subcategories = {
            sub_id: cat_id
            for sub_id, cat_id in db.execute(
                select(Subcategory.id, Subcategory.category_id).where(
                    Subcategory.deleted_at.is_(None)
                )
            ).all()
        }
        franchises = set(
            db.scalars(select(Franchise.id).where(Franchise.deleted_at.is_(None))).all()
        )
        return _ImportContext(
            actor=actor,
            categories=categories,
            subcategories=subcategories,
            franchises=franchises,
        )

    # =========================================================================
    # Row processing
    # =========================================================================

    def _process_row(
        self,
        db: Session,
        job_id: uuid.UUID,
        row: int,
        item: ProductImportItem,
        ctx: _ImportContext,
    ) -> None:
        name = item.item_name.strip()

        if item.delete:
            self._process_delete_row(db, job_id, row, item, ctx)
            return

        prepared, errors = self._prepare(item, ctx)
        if errors:
            self._jobs.record_row(job_id, "failed", JobError(row=row, product=name, fields=errors))
            return

        try:
            if ctx.scoped_franchise_id is not None:
                outcome = self._upsert_listing(db, item, prepared, ctx)
            else:
                outcome = self._upsert(db, job_id, row, item, prepared, ctx)
        except _RowRejected as e:
            db.rollback()
            self._jobs.record_row(job_id, "failed", JobError(row=row, product=name, fields=e.fields))
            return
        except IntegrityError as e:
            db.rollback()
            logger.warning("Batch row rejected by constraint", job_id=str(job_id), row=row, error=str(e.orig))
            self._jobs.record_row(
                job_id,
                "failed",
                JobError(row=row, product=name, fields={"error": "conflicts with an existing product"}),
            )
            return

        self._jobs.record_row(job_id, outcome)

    def _prepare(
        self, item: ProductImportItem, ctx: _ImportContext
    ) -> tuple[_PreparedRow | None, dict[str, str]]:
        errors: dict[str, str] = {}

        if not item.item_name.strip():
            errors["item_name"] = "item_name is required"
        if item.cost_price < Limits.MIN_IMPORT_PRICE:
            errors["cost_price"] = "cost_price must be at least 0.01"
        if item.retail_price < Limits.MIN_IMPORT_PRICE:
            errors["retail_price"] = "retail_price must be at least 0.01"
        if item.stock_quantity < 0:
            errors["stock_quantity"] = "stock_quantity must be at least 0"
        if item.reorder_level < 0:
            errors["reorder_level"] = "reorder_level must be at least 0"
        if item.status not in ProductStatus.ALL:
            errors["status"] = "status must be active or inactive"

        category_id = None
        try:
            category_id = _parse_uuid(item.category_id)
        except ValueError:
            errors["category_id"] = "invalid category ID format"
        else:
            if category_id is None:
                errors["category_id"] = "category_id is required"
            elif category_id not in ctx.categories:
                errors["category_id"] = "category not found"

        subcategory_id = None
        try:
            subcategory_id = _parse_uuid(item.subcategory_id)
        except ValueError:
            errors["subcategory_id"] = "invalid subcategory ID format"
        else:
            if subcategory_id is not None and ctx.subcategories.get(subcategory_id) != category_id:
                errors["subcategory_id"] = "subcategory not found"

        product_id = None
        try:
            product_id = _parse_uuid(item.id)
        except ValueError:
            errors["id"] = "invalid product ID format"

        values: dict[str, Any] = {name: getattr(item, name) for name in COPIED_FIELDS}
        values["item_name"] = item.item_name.strip()
        values["barcode"] = item.barcode.strip() or None
        values["category_id"] = category_id
        values["subcategory_id"] = subcategory_id

        for name in DATE_FIELDS:
            try:
                values[name] = parse_import_date(getattr(item, name))
            except ValueError:
                errors[name] = f"{name} must be a date (YYYY-MM-DD)"

        for key, message in product_invariant_errors(values).items():
            errors.setdefault(key, message)

        if errors:
            return None, errors
        return _PreparedRow(values=values, product_id=product_id, sku=item.sku.strip()), {}

    def _resolve(
        self, db: Session, product_id: uuid.UUID | None, sku: str
    ) -> Product | None:
        """Explicit id first, then SKU. Soft-deleted products are matched by SKU only."""
        if product_id is not None:
            product = db.scalar(
                select(Product)
                .where(Product.id == product_id, Product.deleted_at.is_(None))
                .options(selectinload(Product.images))
            )
            if product is not None:
                return product
        if sku:
            return db.scalar(
                select(Product)
                .where(Product.sku == sku)
                .order_by(Product.deleted_at.is_not(None))
                .options(selectinload(Product.images))
            )
        return None

    def _upsert(
        self,
        db: Session,
        job_id: uuid.UUID,
        row: int,
        item: ProductImportItem,
        prepared: _PreparedRow,
        ctx: _ImportContext,
    ) -> str | None:
        values = prepared.values
        product = self._resolve(db, prepared.product_id, prepared.sku)

        conflicts = _uniqueness_errors(db, product, prepared.sku, values["barcode"])
        if conflicts:
            raise _RowRejected(conflicts)

        if product is None:
            product = new_entity(Product, sku=prepared.sku or generate_sku(), **values)
            db.add(product)
            outcome: str | None = "created"
            changed = True
        else:
            restored = product.is_deleted
            if restored:
                product.restore()
                product.deleted_by = None
            changed = _apply_values(product, values)
            if prepared.sku and product.sku != prepared.sku:
                product.sku = prepared.sku
                changed = True
            if changed:
                product.touch()
            outcome = "created" if restored else ("updated" if changed else None)

        db.flush()
        db.commit()

        ctx.seen_ids.add(product.id)
        ctx.seen_skus.add(product.sku)

        self._apply_franchises(db, job_id, row, item, product, ctx)

        if _images_requested(item):
            images_changed = self._apply_images(db, job_id, row, item, product)
            if images_changed and outcome is None:
                outcome = "updated"

        return outcome

    def _upsert_listing(
        self,
        db: Session,
        item: ProductImportItem,
        prepared: _PreparedRow,
        ctx: _ImportContext,
    ) -> str | None:
        """
        Franchise-scoped row: refresh the caller's listing of an existing
        catalog product. The shared Product row is never written.
        """
        product = self._resolve(db, prepared.product_id, prepared.sku)
        if product is None or product.is_deleted:
            key = prepared.sku or str(prepared.product_id or "")
            raise _RowRejected({"product": f"product {key} not found in the catalog"})

        franchise_id = ctx.scoped_franchise_id
        listing = db.scalar(
            select(FranchiseProduct).where(
                FranchiseProduct.franchise_id == franchise_id,
                FranchiseProduct.product_id == product.id,
            )
        )
        is_available = item.status == ProductStatus.ACTIVE
        if listing is None:
            outcome: str | None = "created"
        elif (listing.stock_quantity, listing.reorder_level, listing.is_available) != (
            item.stock_quantity,
            item.reorder_level,
            is_available,
        ):
            outcome = "updated"
        else:
            outcome = None

        upsert_franchise_product(
            db,
            franchise_id,
            product.id,
            stock_quantity=item.stock_quantity,
            reorder_level=item.reorder_level,
            is_available=is_available,
        )
        db.commit()

        ctx.seen_ids.add(product.id)
        ctx.seen_skus.add(product.sku)
        return outcome

    def _apply_franchises(
        self,
        db: Session,
        job_id: uuid.UUID,
        row: int,
        item: ProductImportItem,
        product: Product,
        ctx: _ImportContext,
    ) -> None:
        targets = set()
        for raw in item.franchise_ids:
            try:
                franchise_id = _parse_uuid(raw)
            except ValueError:
                franchise_id = None
            if franchise_id is None or franchise_id not in ctx.franchises:
                self._jobs.add_error(
                    job_id,
                    JobError(
                        row=row,
                        product=product.item_name,
                        fields={"franchise_ids": f"franchise {raw} not found"},
                    ),
                )
                continue
            targets.add(franchise_id)

        if not targets:
            return
        for franchise_id in targets:
            upsert_franchise_product(
                db,
                franchise_id,
                product.id,
                stock_quantity=item.stock_quantity,
                reorder_level=item.reorder_level,
                is_available=item.status == ProductStatus.ACTIVE,
            )
        db.commit()

    def _apply_images(
        self,
        db: Session,
        job_id: uuid.UUID,
        row: int,
        item: ProductImportItem,
        product: Product,
    ) -> bool:
        """Bring the product's images in line with the row. Returns True when they changed."""
        existing = {img.image_url for img in product.images}
        to_fetch = [url for url in dict.fromkeys(item.image_urls) if url not in existing]

        stored: dict[str, str] = {}
        if to_fetch:
            if self._ingestor is None:
                for url in to_fetch:
                    self._jobs.add_error(
                        job_id,
                        JobError(
                            row=row,
                            product=product.item_name,
                            fields={"image_url": f"cannot ingest {url}: image ingestion is disabled"},
                        ),
                    )
            else:
                for result in self._ingestor.ingest_many(to_fetch, str(product.id)):
                    if result.ok:
                        stored[result.source_url] = result.stored_url
                    else:
                        self._jobs.add_error(
                            job_id,
                            JobError(row=row, product=product.item_name, fields={"image_url": result.error}),
                        )

        final_urls = []
        for url in dict.fromkeys(item.image_urls):
            if url in existing:
                final_urls.append(url)
            elif url in stored:
                final_urls.append(stored[url])

        removed, changed = replace_product_images(db, product, final_urls)
        db.commit()
        if removed:
            storage = self._ingestor.storage if self._ingestor is not None else None
            purge_stored_images(db, storage, removed)
        return changed

    # =========================================================================
    # Deletes
    # =========================================================================

    def _process_delete_row(
        self,
        db: Session,
        job_id: uuid.UUID,
        row: int,
        item: ProductImportItem,
        ctx: _ImportContext,
    ) -> None:
        try:
            product_id = _parse_uuid(item.id)
        except ValueError:
            self._jobs.record_row(
                job_id,
                "failed",
                JobError(row=row, product=item.item_name, fields={"id": "invalid product ID format"}),
            )
            return

        product = self._resolve(db, product_id, item.sku.strip())
        if product is None or product.is_deleted:
            # Nothing to delete
            self._jobs.record_row(job_id, None)
            return

        ctx.seen_ids.add(product.id)
        ctx.seen_skus.add(product.sku)
        outcome, error = self._delete_product(db, product, ctx, row)
        self._jobs.record_row(job_id, outcome, error)

    def _delete_product(
        self, db: Session, product: Product, ctx: _ImportContext, row: int
    ) -> tuple[str | None, JobError | None]:
        """
        Safe delete for admins; franchise users only drop their own listing.
        Returns the outcome counter and an error for refused deletes.
        """
        scoped = ctx.scoped_franchise_id
        if scoped is not None:
            result = db.execute(
                delete(FranchiseProduct).where(
                    FranchiseProduct.franchise_id == scoped,
                    FranchiseProduct.product_id == product.id,
                )
            )
            db.commit()
            return ("deleted" if result.rowcount else None), None

        refs = order_reference_count(db, product.id)
        if refs:
            return "failed", JobError(
                row=row,
                product=product.item_name,
                fields={"product_id": f"referenced by {refs} orders"},
            )
        actor_email = ctx.actor.email if ctx.actor is not None else None
        urls = soft_delete_product(db, product, actor_email)
        db.commit()
        storage = self._ingestor.storage if self._ingestor is not None else None
        purge_stored_images(db, storage, urls)
        return "deleted", None

    def _delete_missing(self, db: Session, job_id: uuid.UUID, ctx: _ImportContext) -> None:
        """Safe-delete every live product the request did not mention."""
        query = select(Product).where(Product.deleted_at.is_(None))
        scoped = ctx.scoped_franchise_id
        if scoped is not None:
            query = query.where(
                Product.id.in_(
                    select(FranchiseProduct.product_id).where(FranchiseProduct.franchise_id == scoped)
                )
            )
        candidates = [
            p
            for p in db.scalars(query.options(selectinload(Product.images))).all()
            if p.id not in ctx.seen_ids and p.sku not in ctx.seen_skus
        ]
        if not candidates:
            return

        self._jobs.extend_total(job_id, len(candidates))
        for product in candidates:
            outcome, error = self._delete_product(db, product, ctx, row=0)
            self._jobs.record_row(job_id, outcome, error)

        logger.info("BATCH_DELETE_MISSING", job_id=str(job_id), candidates=len(candidates))


def _images_requested(item: ProductImportItem) -> bool:
    if item.images_provided is not None:
        return item.images_provided
    return bool(item.image_urls)


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value)
    return value


def _apply_values(product: Product, values: dict[str, Any]) -> bool:
    """Copy values onto the product. Returns True when anything differed."""
    changed = False
    for key, value in values.items():
        if _normalize(getattr(product, key)) != _normalize(value):
            setattr(product, key, value)
            changed = True
    return changed


def _uniqueness_errors(
    db: Session, product: Product | None, sku: str, barcode: str | None
) -> dict[str, str]:
    """SKU and barcode must not belong to a different product."""
    errors: dict[str, str] = {}
    own_id = product.id if product is not None else None
    for name, value in (("sku", sku), ("barcode", barcode)):
        if not value:
            continue
        query = select(Product.id).where(getattr(Product, name) == value)
        if own_id is not None:
            query = query.where(Product.id != own_id)
        if db.scalar(query) is not None:
            errors[name] = f"{name} {value} already belongs to another product"
    return errors
