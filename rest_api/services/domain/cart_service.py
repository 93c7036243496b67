"""
Cart Domain Service.

Each user has one line per product. Mutations lock the user row so two
concurrent adds for the same user serialize instead of racing on the
(user_id, product_id) unique key.
"""

from __future__ import annotations

import uuid

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import CartItem, FranchiseProduct, Product, User, new_entity
from rest_api.services.catalog import resolve_effective_price
from shared.config.constants import Limits, ProductStatus
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import NotFoundError, ValidationError
from shared.utils.schemas import CartItemOutput, CartOutput

logger = get_logger(__name__)


class CartService:
    """
    Domain service for the shopping cart.

    Prices shown in the cart are the effective price in the chosen
    franchise (or the global price when none is given); the order
    re-resolves prices at checkout.
    """

    def __init__(self, db: Session):
        self._db = db

    def _lock_user(self, user_id: uuid.UUID) -> None:
        user = self._db.scalar(select(User.id).where(User.id == user_id).with_for_update())
        if user is None:
            raise NotFoundError("User", user_id)

    def _sellable_product(self, product_id: uuid.UUID) -> Product:
        product = self._db.scalar(
            select(Product).where(
                Product.id == product_id,
                Product.deleted_at.is_(None),
                Product.status == ProductStatus.ACTIVE,
            )
        )
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    def _available_stock(self, product: Product, franchise_id: uuid.UUID | None) -> int:
        if franchise_id is None:
            return product.stock_quantity
        listing = self._db.scalar(
            select(FranchiseProduct).where(
                FranchiseProduct.franchise_id == franchise_id,
                FranchiseProduct.product_id == product.id,
            )
        )
        if listing is None or not listing.is_available:
            return 0
        return listing.stock_quantity

    def _get_line(self, user_id: uuid.UUID, item_id: uuid.UUID) -> CartItem:
        line = self._db.scalar(
            select(CartItem).where(CartItem.id == item_id, CartItem.user_id == user_id)
        )
        if line is None:
            raise NotFoundError("Cart item", item_id)
        return line

    def get_cart(self, user_id: uuid.UUID, franchise_id: uuid.UUID | None = None) -> CartOutput:
        lines = self._db.scalars(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .options(selectinload(CartItem.product).selectinload(Product.images))
            .order_by(CartItem.created_at)
        ).all()

        overrides: dict[uuid.UUID, FranchiseProduct] = {}
        if franchise_id is not None and lines:
            overrides = {
                fp.product_id: fp
                for fp in self._db.scalars(
                    select(FranchiseProduct).where(
                        FranchiseProduct.franchise_id == franchise_id,
                        FranchiseProduct.product_id.in_([line.product_id for line in lines]),
                    )
                ).all()
            }

        items = []
        for line in lines:
            product = line.product
            override = overrides.get(product.id)
            price = resolve_effective_price(product, override).current_price
            stock = override.stock_quantity if override is not None else product.stock_quantity
            items.append(
                CartItemOutput(
                    id=line.id,
                    product_id=product.id,
                    item_name=product.item_name,
                    sku=product.sku,
                    image_url=product.primary_image_url,
                    price=price,
                    quantity=line.quantity,
                    line_total=round(price * line.quantity, 2),
                    stock_quantity=stock,
                )
            )

        return CartOutput(
            items=items,
            subtotal=round(sum(i.line_total for i in items), 2),
            item_count=sum(i.quantity for i in items),
        )

    def add_item(
        self,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
        franchise_id: uuid.UUID | None = None,
    ) -> CartItem:
        """Add a product, or increase the quantity of an existing line."""
        self._lock_user(user_id)
        product = self._sellable_product(product_id)

        line = self._db.scalar(
            select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
        )
        wanted = quantity + (line.quantity if line is not None else 0)
        if wanted > Limits.MAX_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {Limits.MAX_QUANTITY}")
        available = self._available_stock(product, franchise_id)
        if wanted > available:
            raise ValidationError(
                "Insufficient stock",
                product_id=str(product_id),
                available=available,
                requested=wanted,
            )

        if line is None:
            line = new_entity(CartItem, user_id=user_id, product_id=product_id, quantity=wanted)
            self._db.add(line)
        else:
            line.quantity = wanted
            line.touch()
        safe_commit(self._db)
        self._db.refresh(line)
        logger.debug("Cart item added", user_id=str(user_id), product_id=str(product_id), quantity=wanted)
        return line

    def update_item(
        self,
        user_id: uuid.UUID,
        item_id: uuid.UUID,
        quantity: int,
        franchise_id: uuid.UUID | None = None,
    ) -> CartItem:
        self._lock_user(user_id)
        line = self._get_line(user_id, item_id)
        product = self._sellable_product(line.product_id)
        available = self._available_stock(product, franchise_id)
        if quantity > available:
            raise ValidationError(
                "Insufficient stock",
                product_id=str(product.id),
                available=available,
                requested=quantity,
            )
        line.quantity = quantity
        line.touch()
        safe_commit(self._db)
        self._db.refresh(line)
        return line

    def remove_item(self, user_id: uuid.UUID, item_id: uuid.UUID) -> None:
        self._lock_user(user_id)
        line = self._get_line(user_id, item_id)
        self._db.delete(line)
        safe_commit(self._db)

    def clear(self, user_id: uuid.UUID) -> int:
        self._lock_user(user_id)
        result = self._db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        safe_commit(self._db)
        return result.rowcount or 0
