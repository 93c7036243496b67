"""
Order Domain Service.

Checkout turns the caller's cart into an order inside one transaction:
stock is decremented under row locks, product data is snapshotted into
OrderItems and the cart is cleared. Status changes move along
ORDER_TRANSITIONS only, with stock restored on cancel and loyalty points
credited on delivery. Emails go out after commit and never block.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from rest_api.models import (
    CartItem,
    Category,
    Franchise,
    FranchiseProduct,
    LoyaltyHistory,
    Order,
    OrderItem,
    Product,
    User,
    new_entity,
    utcnow,
)
from rest_api.services.catalog import (
    calculate_delivery_fee,
    find_nearest_franchise,
    resolve_effective_price,
)
from shared.config.constants import (
    Limits,
    LoyaltyType,
    OrderStatus,
    ProductStatus,
    Role,
    get_allowed_order_transitions,
    parse_order_status,
    validate_order_transition,
)
from shared.config.logging import orders_logger as logger
from shared.config.settings import Settings
from shared.infrastructure.db import safe_commit
from shared.infrastructure.email import EmailService
from shared.security.auth import TokenClaims, ensure_franchise_scope
from shared.utils.exceptions import (
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import CreateOrderRequest


@dataclass(frozen=True, slots=True)
class DeliveryPolicy:
    """Fee schedule for orders placed without a franchise."""

    delivery_fee: float
    free_delivery_min: float


def format_order_number(order_id: uuid.UUID, moment: datetime) -> str:
    """ORD + yyyymmddHHMMSS + first 8 hex chars of the order id."""
    return f"ORD{moment.strftime('%Y%m%d%H%M%S')}{order_id.hex[:8]}"


def points_for_total(total: float) -> int:
    return max(0, math.floor(total))


class OrderService:
    """
    Domain service for the order lifecycle.

    Usage:
        service = OrderService(db, mailer, settings)
        order = service.create_order(claims.user_id, body)
        order = service.update_status(order.id, "confirmed", claims)
    """

    def __init__(self, db: Session, mailer: EmailService, settings: Settings):
        self._db = db
        self._mailer = mailer
        self._default_policy = DeliveryPolicy(
            delivery_fee=settings.default_delivery_fee,
            free_delivery_min=settings.default_free_delivery_min,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def _load(self, order_id: uuid.UUID, lock: bool = False) -> Order | None:
        query = select(Order).where(Order.id == order_id, Order.deleted_at.is_(None))
        if lock:
            query = query.with_for_update()
        return self._db.scalar(query.options(selectinload(Order.items)))

    def get_order(self, actor: TokenClaims, order_id: uuid.UUID) -> Order:
        """
        Fetch one order the caller may see.

        Customers only see their own orders (404 otherwise); franchise
        users get 403 for another franchise's order.
        """
        order = self._load(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if actor.role is Role.CUSTOMER:
            if order.user_id != actor.user_id:
                raise NotFoundError("Order", order_id)
        elif actor.is_franchise_user:
            ensure_franchise_scope(actor, order.franchise_id)
        return order

    def list_orders(
        self,
        actor: TokenClaims,
        status: str | None = None,
        limit: int = Limits.DEFAULT_PAGE_SIZE,
        offset: int = Limits.DEFAULT_OFFSET,
    ) -> list[Order]:
        """Newest first. Customers see their own, franchise users their franchise's, admins all."""
        query = select(Order).where(Order.deleted_at.is_(None))
        if actor.role is Role.CUSTOMER:
            query = query.where(Order.user_id == actor.user_id)
        elif actor.is_franchise_user:
            query = query.where(Order.franchise_id == actor.franchise_id)

        if status:
            parsed = parse_order_status(status)
            if parsed is None:
                raise ValidationError("Invalid status", status=status)
            query = query.where(Order.status == parsed.value)

        limit = min(max(1, limit), Limits.MAX_PAGE_SIZE)
        return list(
            self._db.scalars(
                query.options(selectinload(Order.items))
                .order_by(Order.created_at.desc())
                .limit(limit)
                .offset(max(0, offset))
            ).all()
        )

    @staticmethod
    def allowed_transitions(status: str | None = None) -> dict[str, list[str]]:
        """Transition table, or the targets reachable from one status."""
        if status is not None:
            if parse_order_status(status) is None:
                raise ValidationError("Invalid status", status=status)
            return {status: get_allowed_order_transitions(status)}
        return {s.value: get_allowed_order_transitions(s.value) for s in OrderStatus}

    def dashboard(self, franchise_id: uuid.UUID | None = None) -> dict:
        """
        Headline figures for the back office, optionally for one franchise.

        Revenue sums order totals, cancelled orders excepted;
        recent_revenue covers the last DASHBOARD_REVENUE_DAYS days.
        Category and franchise counts are always global.
        """
        if franchise_id is not None and self._db.scalar(
            select(Franchise.id).where(Franchise.id == franchise_id, Franchise.deleted_at.is_(None))
        ) is None:
            raise NotFoundError("Franchise", franchise_id)

        def scoped(query):
            query = query.where(Order.deleted_at.is_(None))
            if franchise_id is not None:
                query = query.where(Order.franchise_id == franchise_id)
            return query

        if franchise_id is not None:
            total_products = self._db.scalar(
                select(func.count(FranchiseProduct.id)).where(
                    FranchiseProduct.franchise_id == franchise_id
                )
            )
        else:
            total_products = self._db.scalar(
                select(func.count(Product.id)).where(Product.deleted_at.is_(None))
            )

        revenue = scoped(
            select(func.coalesce(func.sum(Order.total), 0.0)).where(
                Order.status != OrderStatus.CANCELLED.value
            )
        )
        since = utcnow() - timedelta(days=Limits.DASHBOARD_REVENUE_DAYS)
        recent_orders = self._db.scalars(
            scoped(select(Order))
            .options(selectinload(Order.items))
            .order_by(Order.created_at.desc())
            .limit(Limits.DASHBOARD_RECENT_ORDERS)
        ).all()

        return {
            "total_products": total_products or 0,
            "total_orders": self._db.scalar(scoped(select(func.count(Order.id)))) or 0,
            "total_revenue": round(float(self._db.scalar(revenue) or 0), 2),
            "recent_revenue": round(
                float(self._db.scalar(revenue.where(Order.created_at >= since)) or 0), 2
            ),
            "pending_orders": self._db.scalar(
                scoped(select(func.count(Order.id))).where(
                    Order.status == OrderStatus.PENDING.value
                )
            ) or 0,
            "total_categories": self._db.scalar(
                select(func.count(Category.id)).where(Category.deleted_at.is_(None))
            ) or 0,
            "total_franchises": self._db.scalar(
                select(func.count(Franchise.id)).where(Franchise.deleted_at.is_(None))
            ) or 0,
            "recent_orders": list(recent_orders),
        }

    # =========================================================================
    # Checkout
    # =========================================================================

    def _resolve_franchise(self, body: CreateOrderRequest) -> Franchise | None:
        if body.franchise_id is not None:
            franchise = self._db.scalar(
                select(Franchise).where(
                    Franchise.id == body.franchise_id,
                    Franchise.is_active.is_(True),
                    Franchise.deleted_at.is_(None),
                )
            )
            if franchise is None:
                raise NotFoundError("Franchise", body.franchise_id)
            return franchise

        if body.customer_lat is None or body.customer_lng is None:
            return None

        candidates = self._db.scalars(
            select(Franchise).where(Franchise.is_active.is_(True), Franchise.deleted_at.is_(None))
        ).all()
        nearest = find_nearest_franchise(candidates, body.customer_lat, body.customer_lng)
        if nearest is None:
            raise ValidationError(
                "No franchise delivers to your location",
                lat=body.customer_lat,
                lng=body.customer_lng,
            )
        return nearest[0]

    def _lock_listing(self, franchise_id: uuid.UUID, product_id: uuid.UUID) -> FranchiseProduct | None:
        return self._db.scalar(
            select(FranchiseProduct)
            .where(
                FranchiseProduct.franchise_id == franchise_id,
                FranchiseProduct.product_id == product_id,
            )
            .with_for_update()
        )

    def _lock_product(self, product_id: uuid.UUID) -> Product | None:
        return self._db.scalar(
            select(Product)
            .where(Product.id == product_id, Product.deleted_at.is_(None))
            .options(selectinload(Product.images))
            .with_for_update()
        )

    def _insert_order(self, order: Order) -> None:
        """
        Insert the order under a savepoint. When a concurrent checkout holds
        the same order number, retry with a fresh id and number.

        Raises:
            InternalError: Still colliding after ORDER_NUMBER_ATTEMPTS tries.
        """
        for attempt in range(1, Limits.ORDER_NUMBER_ATTEMPTS + 1):
            try:
                with self._db.begin_nested():
                    self._db.add(order)
            except IntegrityError as e:
                if "order_number" not in str(e.orig):
                    raise
                logger.warning("Order number collision", order_number=order.order_number, attempt=attempt)
                order.id = uuid.uuid4()
                order.order_number = format_order_number(order.id, utcnow())
                for item in order.items:
                    item.order_id = order.id
                continue
            return
        raise InternalError("Failed to generate a unique order number")

    def create_order(self, user_id: uuid.UUID, body: CreateOrderRequest) -> Order:
        """
        Place an order from the user's cart.

        Raises:
            NotFoundError: Explicit franchise missing or inactive.
            ValidationError: Empty cart, no delivering franchise, product
                unavailable or insufficient stock.
        """
        user = self._db.scalar(select(User).where(User.id == user_id).with_for_update())
        if user is None or user.is_deleted:
            raise NotFoundError("User", user_id)

        franchise = self._resolve_franchise(body)

        cart = self._db.scalars(
            select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.created_at)
        ).all()
        if not cart:
            raise ValidationError("Cart is empty", user_id=str(user_id))

        now = utcnow()
        order_id = uuid.uuid4()
        order_number = format_order_number(order_id, now)
        items: list[OrderItem] = []
        subtotal = 0.0

        for line in cart:
            product = self._lock_product(line.product_id)
            if product is None or product.status != ProductStatus.ACTIVE:
                raise ValidationError("Product is no longer available", product_id=str(line.product_id))

            listing = self._lock_listing(franchise.id, product.id) if franchise else None
            if listing is not None and not listing.is_available:
                raise ValidationError(
                    f"{product.item_name} is not available in this store", product_id=str(product.id)
                )

            stock_holder = listing if listing is not None else product
            if stock_holder.stock_quantity < line.quantity:
                raise ValidationError(
                    f"Insufficient stock for {product.item_name}",
                    product_id=str(product.id),
                    available=stock_holder.stock_quantity,
                    requested=line.quantity,
                )
            stock_holder.stock_quantity -= line.quantity

            price = resolve_effective_price(product, listing, now).current_price
            subtotal += price * line.quantity
            items.append(
                new_entity(
                    OrderItem,
                    order_id=order_id,
                    product_id=product.id,
                    product_name=product.item_name,
                    product_sku=product.sku,
                    image_url=product.primary_image_url,
                    quantity=line.quantity,
                    price=price,
                )
            )

        subtotal = round(subtotal, 2)
        delivery_fee = round(calculate_delivery_fee(subtotal, franchise or self._default_policy), 2)
        total = round(subtotal + delivery_fee, 2)

        order = new_entity(
            Order,
            id=order_id,
            order_number=order_number,
            user_id=user_id,
            franchise_id=franchise.id if franchise else None,
            status=OrderStatus.PENDING.value,
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            total=total,
            delivery_address=body.delivery_address.strip(),
            payment_method=body.payment_method.strip(),
            points_earned=points_for_total(total),
            customer_lat=body.customer_lat,
            customer_lng=body.customer_lng,
            items=items,
        )
        self._insert_order(order)
        self._db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        safe_commit(self._db)

        logger.info(
            "ORDER_CREATED",
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=str(user_id),
            franchise_id=str(order.franchise_id) if order.franchise_id else None,
            total=total,
            items=len(items),
        )
        self._mailer.send_order_confirmation(user.email, user.name, order.order_number, total)

        self._db.refresh(order)
        return order

    # =========================================================================
    # Status transitions
    # =========================================================================

    def _restore_stock(self, order: Order) -> None:
        for item in order.items:
            if item.product_id is None:
                continue
            listing = (
                self._lock_listing(order.franchise_id, item.product_id)
                if order.franchise_id
                else None
            )
            if listing is not None:
                listing.stock_quantity += item.quantity
                continue
            product = self._db.scalar(
                select(Product).where(Product.id == item.product_id).with_for_update()
            )
            if product is not None:
                product.stock_quantity += item.quantity

    def _credited_points(self, order: Order) -> int:
        entries = self._db.scalars(
            select(LoyaltyHistory).where(
                LoyaltyHistory.order_id == order.id,
                LoyaltyHistory.type == LoyaltyType.EARNED,
            )
        ).all()
        return sum(e.points for e in entries)

    def _reverse_loyalty(self, order: Order, user: User) -> None:
        credited = self._credited_points(order)
        if credited <= 0:
            return
        reversed_points = min(credited, user.loyalty_points)
        user.loyalty_points -= reversed_points
        self._db.add(
            new_entity(
                LoyaltyHistory,
                user_id=user.id,
                points=-reversed_points,
                type=LoyaltyType.EARNED,
                description=f"Reversed: order {order.order_number} cancelled",
                order_id=order.id,
            )
        )

    def _credit_loyalty(self, order: Order, user: User) -> None:
        points = points_for_total(order.total)
        if points <= 0:
            return
        user.loyalty_points += points
        self._db.add(
            new_entity(
                LoyaltyHistory,
                user_id=user.id,
                points=points,
                type=LoyaltyType.EARNED,
                description=f"Order {order.order_number} delivered",
                order_id=order.id,
            )
        )

    def update_status(self, order_id: uuid.UUID, new_status: str, actor: TokenClaims) -> Order:
        """
        Move an order to a new status.

        Raises:
            NotFoundError: Unknown order.
            FranchiseAccessError: Franchise user acting on another franchise's order.
            InvalidTransitionError: Target not reachable from the current status.
        """
        target = parse_order_status(new_status)
        if target is None:
            raise ValidationError("Invalid status", status=new_status)

        order = self._load(order_id, lock=True)
        if order is None:
            raise NotFoundError("Order", order_id)
        if actor.is_franchise_user:
            ensure_franchise_scope(actor, order.franchise_id)

        current = order.status
        if not validate_order_transition(current, target.value):
            raise InvalidTransitionError("order", current, target.value, order_id=str(order.id))

        user = self._db.scalar(select(User).where(User.id == order.user_id).with_for_update())

        if target is OrderStatus.CANCELLED:
            self._restore_stock(order)
            if user is not None:
                self._reverse_loyalty(order, user)
        elif target is OrderStatus.DELIVERED and user is not None:
            self._credit_loyalty(order, user)

        order.status = target.value
        order.touch()
        safe_commit(self._db)

        logger.info(
            "ORDER_STATUS_CHANGED",
            order_id=str(order.id),
            from_status=current,
            to_status=target.value,
            by=str(actor.user_id),
        )
        if user is not None:
            self._mailer.send_order_status_update(user.email, user.name, order.order_number, target.value)

        self._db.refresh(order)
        return order
