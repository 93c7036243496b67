"""
Franchise Domain Service.

Handles:
- Franchise creation with owner account and a week of default store hours
- Delivery coverage lookups (nearest / nearby)
- Franchise portal: stock, price overrides, store hours and team members
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import (
    Franchise,
    FranchiseProduct,
    FranchiseStaff,
    Product,
    StoreHours,
    User,
    new_entity,
    utcnow,
)
from rest_api.services.catalog import (
    calculate_store_status,
    estimate_delivery_time,
    franchises_in_range,
    resolve_effective_price,
)
from shared.config.constants import Limits, Role, StaffRole
from shared.config.logging import get_logger, mask_email
from shared.config.settings import Settings
from shared.infrastructure.db import safe_commit
from shared.infrastructure.email import EmailService
from shared.security.password import hash_password
from shared.utils.admin_schemas import (
    FranchiseCreate,
    FranchiseProductOutput,
    FranchiseUpdate,
    PricingUpdateRequest,
    StaffInviteRequest,
    StockUpdateRequest,
    StoreHoursEntry,
)
from shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    FranchiseAccessError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    FranchiseOutput,
    NearbyFranchiseOutput,
    StoreStatusOutput,
)
from shared.utils.validators import escape_like_pattern, sanitize_search_term, slugify

logger = get_logger(__name__)

DAYS_IN_WEEK = 7


def default_store_hours(franchise_id: uuid.UUID) -> list[StoreHours]:
    """Seven rows, 09:00-21:00, open every day."""
    return [
        new_entity(StoreHours, franchise_id=franchise_id, day_of_week=day, is_closed=False)
        for day in range(DAYS_IN_WEEK)
    ]


def temporary_password() -> str:
    return secrets.token_urlsafe(12)


class FranchiseService:
    """
    Domain service for franchises and the franchise portal.

    Business rules:
    - Every franchise has exactly seven StoreHours rows
    - A user belongs to at most one franchise team
    - The owner cannot be removed from the team
    """

    def __init__(self, db: Session, mailer: EmailService | None = None, settings: Settings | None = None):
        self._db = db
        self._mailer = mailer
        self._settings = settings

    # =========================================================================
    # Lookups
    # =========================================================================

    def get(self, franchise_id: uuid.UUID, active_only: bool = False) -> Franchise:
        query = select(Franchise).where(Franchise.id == franchise_id, Franchise.deleted_at.is_(None))
        if active_only:
            query = query.where(Franchise.is_active.is_(True))
        franchise = self._db.scalar(query.options(selectinload(Franchise.store_hours)))
        if franchise is None:
            raise NotFoundError("Franchise", franchise_id)
        return franchise

    def list(self, active_only: bool = False) -> list[Franchise]:
        query = select(Franchise).where(Franchise.deleted_at.is_(None))
        if active_only:
            query = query.where(Franchise.is_active.is_(True))
        return list(
            self._db.scalars(
                query.options(selectinload(Franchise.store_hours)).order_by(Franchise.name)
            ).all()
        )

    def nearby(self, lat: float, lng: float, now: datetime | None = None) -> list[NearbyFranchiseOutput]:
        """Active franchises delivering to the point, nearest first."""
        now = now or utcnow()
        result = []
        for franchise, distance in franchises_in_range(self.list(active_only=True), lat, lng):
            status = calculate_store_status(franchise.store_hours, now)
            result.append(
                NearbyFranchiseOutput(
                    franchise=FranchiseOutput.model_validate(franchise),
                    distance_km=round(distance, 2),
                    delivery_time=estimate_delivery_time(distance),
                    store_status=StoreStatusOutput(is_open=status.is_open, message=status.message),
                )
            )
        return result

    def nearest(self, lat: float, lng: float, now: datetime | None = None) -> NearbyFranchiseOutput:
        candidates = self.nearby(lat, lng, now)
        if not candidates:
            raise NotFoundError("Franchise", lat=lat, lng=lng)
        return candidates[0]

    # =========================================================================
    # Admin: create / update
    # =========================================================================

    def _unique_slug(self, base: str) -> str:
        slug = base or "franchise"
        taken = self._db.scalar(select(Franchise.id).where(Franchise.slug == slug))
        if taken is not None:
            raise DuplicateEntityError("Franchise", slug)
        return slug

    def create(self, body: FranchiseCreate) -> Franchise:
        """
        Create a franchise and attach its owner.

        An existing account with the owner email is promoted; otherwise a
        new owner account is created and receives its credentials by email.
        """
        slug = self._unique_slug(slugify(body.slug or body.name))
        email = body.owner_email.strip().lower()

        owner = self._db.scalar(select(User).where(User.email == email, User.deleted_at.is_(None)))
        password = None
        if owner is None:
            password = body.owner_password or temporary_password()
            owner = new_entity(
                User,
                email=email,
                password_hash=hash_password(password),
                name=body.owner_name.strip(),
                role=Role.FRANCHISE_OWNER.value,
            )
            self._db.add(owner)
            self._db.flush()
        else:
            if owner.role == Role.ADMIN.value:
                raise ConflictError("An admin account cannot own a franchise", email=mask_email(email))
            if owner.franchise_id is not None:
                raise ConflictError("User already belongs to a franchise", email=mask_email(email))

        franchise = new_entity(
            Franchise,
            name=body.name.strip(),
            slug=slug,
            owner_id=owner.id,
            address=body.address,
            city=body.city,
            post_code=body.post_code,
            latitude=body.latitude,
            longitude=body.longitude,
            delivery_radius=body.delivery_radius,
            delivery_fee=body.delivery_fee,
            free_delivery_min=body.free_delivery_min,
            phone=body.phone,
            email=body.email,
            is_active=True,
        )
        franchise.store_hours = default_store_hours(franchise.id)
        self._db.add(franchise)

        owner.role = Role.FRANCHISE_OWNER.value
        owner.franchise_id = franchise.id
        self._db.add(
            new_entity(FranchiseStaff, franchise_id=franchise.id, user_id=owner.id, role=StaffRole.MANAGER)
        )
        safe_commit(self._db)
        self._db.refresh(franchise)

        logger.info("FRANCHISE_CREATED", franchise_id=str(franchise.id), slug=slug, owner_id=str(owner.id))
        if self._mailer is not None:
            self._mailer.send_staff_invite(
                owner.email, owner.name, franchise.name, "owner", self._portal_url(), password
            )
        return franchise

    def update(self, franchise_id: uuid.UUID, body: FranchiseUpdate) -> Franchise:
        franchise = self.get(franchise_id)
        changes = body.model_dump(exclude_unset=True)
        for key, value in changes.items():
            if value is None:
                continue
            setattr(franchise, key, value)
        franchise.touch()
        safe_commit(self._db)
        self._db.refresh(franchise)
        logger.info("FRANCHISE_UPDATED", franchise_id=str(franchise_id), fields=list(changes))
        return franchise

    def _portal_url(self) -> str:
        if self._settings is None:
            return ""
        return self._settings.reset_link_base(Role.FRANCHISE_OWNER.value)

    # =========================================================================
    # Portal: products
    # =========================================================================

    @staticmethod
    def _product_output(listing: FranchiseProduct, now: datetime | None = None) -> FranchiseProductOutput:
        product = listing.product
        price = resolve_effective_price(product, listing, now)
        return FranchiseProductOutput(
            product_id=product.id,
            sku=product.sku,
            item_name=product.item_name,
            category_id=product.category_id,
            image_url=product.primary_image_url,
            retail_price=product.retail_price,
            retail_price_override=listing.retail_price_override,
            promotion_price_override=listing.promotion_price_override,
            promotion_start_override=listing.promotion_start_override,
            promotion_end_override=listing.promotion_end_override,
            current_price=price.current_price,
            promotion_active=price.promotion_active,
            stock_quantity=listing.stock_quantity,
            reorder_level=listing.reorder_level,
            shelf_location=listing.shelf_location,
            is_available=listing.is_available,
            low_stock=listing.stock_quantity <= listing.reorder_level,
        )

    def list_products(
        self,
        franchise_id: uuid.UUID,
        search: str | None = None,
        low_stock: bool = False,
        limit: int = Limits.DEFAULT_PAGE_SIZE,
        offset: int = Limits.DEFAULT_OFFSET,
    ) -> tuple[list[FranchiseProductOutput], int]:
        query = (
            select(FranchiseProduct)
            .join(Product, Product.id == FranchiseProduct.product_id)
            .where(FranchiseProduct.franchise_id == franchise_id, Product.deleted_at.is_(None))
        )
        term = sanitize_search_term(search)
        if term:
            pattern = f"%{escape_like_pattern(term.lower())}%"
            query = query.where(
                func.lower(Product.item_name).like(pattern, escape="\\")
                | func.lower(Product.sku).like(pattern, escape="\\")
            )
        if low_stock:
            query = query.where(FranchiseProduct.stock_quantity <= FranchiseProduct.reorder_level)

        total = self._db.scalar(select(func.count()).select_from(query.subquery())) or 0
        listings = self._db.scalars(
            query.options(selectinload(FranchiseProduct.product).selectinload(Product.images))
            .order_by(Product.item_name)
            .limit(min(max(1, limit), Limits.MAX_PAGE_SIZE))
            .offset(max(0, offset))
        ).all()
        now = utcnow()
        return [self._product_output(listing, now) for listing in listings], total

    def _get_listing(self, franchise_id: uuid.UUID, product_id: uuid.UUID) -> FranchiseProduct:
        listing = self._db.scalar(
            select(FranchiseProduct)
            .join(Product, Product.id == FranchiseProduct.product_id)
            .where(
                FranchiseProduct.franchise_id == franchise_id,
                FranchiseProduct.product_id == product_id,
                Product.deleted_at.is_(None),
            )
            .with_for_update()
        )
        if listing is None:
            raise NotFoundError("Product", product_id)
        return listing

    def update_stock(
        self, franchise_id: uuid.UUID, product_id: uuid.UUID, body: StockUpdateRequest
    ) -> FranchiseProductOutput:
        listing = self._get_listing(franchise_id, product_id)
        listing.stock_quantity = body.stock_quantity
        if body.reorder_level is not None:
            listing.reorder_level = body.reorder_level
        if body.shelf_location is not None:
            listing.shelf_location = body.shelf_location
        if body.is_available is not None:
            listing.is_available = body.is_available
        listing.touch()
        safe_commit(self._db)
        self._db.refresh(listing)
        logger.info(
            "FRANCHISE_STOCK_UPDATED",
            franchise_id=str(franchise_id),
            product_id=str(product_id),
            stock_quantity=listing.stock_quantity,
        )
        return self._product_output(listing)

    def update_pricing(
        self, franchise_id: uuid.UUID, product_id: uuid.UUID, body: PricingUpdateRequest
    ) -> FranchiseProductOutput:
        """Replace the price overrides. Omitted or null fields clear the override."""
        listing = self._get_listing(franchise_id, product_id)
        retail = body.retail_price_override or listing.product.retail_price
        promo = body.promotion_price_override
        if promo is not None and promo >= retail:
            raise ValidationError("promotion_price must be lower than retail_price")
        start, end = body.promotion_start_override, body.promotion_end_override
        if start is not None and end is not None and end < start:
            raise ValidationError("promotion_end must be after promotion_start")

        listing.retail_price_override = body.retail_price_override
        listing.promotion_price_override = promo
        listing.promotion_start_override = start
        listing.promotion_end_override = end
        listing.touch()
        safe_commit(self._db)
        self._db.refresh(listing)
        logger.info("FRANCHISE_PRICING_UPDATED", franchise_id=str(franchise_id), product_id=str(product_id))
        return self._product_output(listing)

    # =========================================================================
    # Portal: store hours
    # =========================================================================

    def get_hours(self, franchise_id: uuid.UUID) -> list[StoreHours]:
        return list(self.get(franchise_id).store_hours)

    def update_hours(self, franchise_id: uuid.UUID, entries: list[StoreHoursEntry]) -> list[StoreHours]:
        franchise = self.get(franchise_id)
        by_day = {h.day_of_week: h for h in franchise.store_hours}
        seen: set[int] = set()
        for entry in entries:
            if entry.day_of_week in seen:
                raise ValidationError(f"Duplicate day_of_week {entry.day_of_week}")
            seen.add(entry.day_of_week)
            if not entry.is_closed and entry.close_time <= entry.open_time:
                raise ValidationError("close_time must be after open_time", day_of_week=entry.day_of_week)

            hours = by_day.get(entry.day_of_week)
            if hours is None:
                hours = new_entity(StoreHours, franchise_id=franchise.id, day_of_week=entry.day_of_week)
                franchise.store_hours.append(hours)
            hours.open_time = entry.open_time
            hours.close_time = entry.close_time
            hours.is_closed = entry.is_closed
            hours.touch()

        safe_commit(self._db)
        self._db.refresh(franchise)
        logger.info("FRANCHISE_HOURS_UPDATED", franchise_id=str(franchise_id), days=sorted(seen))
        return list(franchise.store_hours)

    # =========================================================================
    # Portal: team
    # =========================================================================

    def list_staff(self, franchise_id: uuid.UUID) -> list[FranchiseStaff]:
        return list(
            self._db.scalars(
                select(FranchiseStaff)
                .where(FranchiseStaff.franchise_id == franchise_id, FranchiseStaff.deleted_at.is_(None))
                .options(selectinload(FranchiseStaff.user))
                .order_by(FranchiseStaff.created_at)
            ).all()
        )

    def invite_staff(self, franchise_id: uuid.UUID, body: StaffInviteRequest) -> FranchiseStaff:
        """Add a team member, creating the account when the email is new."""
        franchise = self.get(franchise_id)
        email = body.email.strip().lower()

        user = self._db.scalar(select(User).where(User.email == email, User.deleted_at.is_(None)))
        password = None
        if user is None:
            password = temporary_password()
            user = new_entity(
                User,
                email=email,
                password_hash=hash_password(password),
                name=body.name.strip(),
                role=Role.FRANCHISE_STAFF.value,
                franchise_id=franchise.id,
            )
            self._db.add(user)
            self._db.flush()
        else:
            if user.role == Role.ADMIN.value:
                raise ConflictError("An admin account cannot join a franchise", email=mask_email(email))
            if user.franchise_id is not None:
                raise ConflictError("User already belongs to a franchise", email=mask_email(email))
            user.role = Role.FRANCHISE_STAFF.value
            user.franchise_id = franchise.id

        member = new_entity(FranchiseStaff, franchise_id=franchise.id, user_id=user.id, role=body.role)
        self._db.add(member)
        safe_commit(self._db)
        self._db.refresh(member)

        logger.info(
            "FRANCHISE_STAFF_ADDED",
            franchise_id=str(franchise_id),
            user_id=str(user.id),
            role=body.role,
        )
        if self._mailer is not None:
            self._mailer.send_staff_invite(
                user.email, user.name, franchise.name, body.role, self._portal_url(), password
            )
        return member

    def remove_staff(self, franchise_id: uuid.UUID, staff_id: uuid.UUID) -> None:
        member = self._db.get(FranchiseStaff, staff_id)
        if member is None:
            raise NotFoundError("Staff member", staff_id)
        if member.franchise_id != franchise_id:
            raise FranchiseAccessError(member.franchise_id, staff_id=str(staff_id))

        franchise = self.get(franchise_id)
        if member.user_id == franchise.owner_id:
            raise ValidationError("Cannot remove the franchise owner")

        user_id = member.user_id
        user = self._db.get(User, user_id)
        if user is not None:
            user.role = Role.CUSTOMER.value
            user.franchise_id = None
            user.touch()
        self._db.delete(member)
        safe_commit(self._db)
        logger.info("FRANCHISE_STAFF_REMOVED", franchise_id=str(franchise_id), user_id=str(user_id))
