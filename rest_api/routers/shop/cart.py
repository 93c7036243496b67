"""
Cart endpoints.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rest_api.services.domain import CartService
from shared.infrastructure.db import get_db
from shared.security.auth import TokenClaims, require_auth
from shared.utils.schemas import CartAddRequest, CartOutput, CartUpdateRequest, MessageResponse


router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("", response_model=CartOutput)
def get_cart(
    franchise_id: uuid.UUID | None = None,
    claims: TokenClaims = Depends(require_auth),
    db: Session = Depends(get_db),
) -> CartOutput:
    """Cart lines priced for the given franchise, or globally."""
    return CartService(db).get_cart(claims.user_id, franchise_id)


@router.post("", response_model=CartOutput)
def add_to_cart(
    body: CartAddRequest,
    claims: TokenClaims = Depends(require_auth),
    db: Session = Depends(get_db),
) -> CartOutput:
    """Add a product. Adding one already in the cart increases its quantity."""
    service = CartService(db)
    service.add_item(claims.user_id, body.product_id, body.quantity, body.franchise_id)
    return service.get_cart(claims.user_id, body.franchise_id)


@router.put("/{item_id}", response_model=CartOutput)
def update_cart_item(
    item_id: uuid.UUID,
    body: CartUpdateRequest,
    franchise_id: uuid.UUID | None = None,
    claims: TokenClaims = Depends(require_auth),
    db: Session = Depends(get_db),
) -> CartOutput:
    service = CartService(db)
    service.update_item(claims.user_id, item_id, body.quantity, franchise_id)
    return service.get_cart(claims.user_id, franchise_id)


@router.delete("/{item_id}", response_model=MessageResponse)
def remove_cart_item(
    item_id: uuid.UUID,
    claims: TokenClaims = Depends(require_auth),
    db: Session = Depends(get_db),
) -> MessageResponse:
    CartService(db).remove_item(claims.user_id, item_id)
    return MessageResponse(message="Item removed from cart")


@router.delete("", response_model=MessageResponse)
def clear_cart(
    claims: TokenClaims = Depends(require_auth),
    db: Session = Depends(get_db),
) -> MessageResponse:
    CartService(db).clear(claims.user_id)
    return MessageResponse(message="Cart cleared")
