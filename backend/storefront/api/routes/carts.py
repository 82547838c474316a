"""Cart Routes — owner cart reads, item commands, save (replace) and restore (merge).

Invariants:
    - Owner id always comes from get_owner_id
    - Every command goes through retry_on_conflict (stale version retried once)
    - Responses are built from the persisted row, so summary matches items

Design Decisions:
    - Item commands keyed by service_id in the path; the body only carries data
"""

from fastapi import APIRouter, Depends

from storefront.api.conflict_retry import retry_on_conflict
from storefront.api.dependencies import get_cart_service, get_owner_id
from storefront.schemas.cart import (
    CartItemsIn,
    CartResponse,
    CartSummaryResponse,
    QuantityIn,
    ServiceSnapshotIn,
)
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/api/v1/cart", tags=["cart"])


@router.get("", response_model=CartResponse)
async def get_cart(
    owner_id: str = Depends(get_owner_id),
    service: CartService = Depends(get_cart_service),
):
    """Owner's cart, created empty on first access."""
    cart = await retry_on_conflict(lambda: service.get_cart(owner_id), owner_id)
    return CartResponse.from_cart(cart)


@router.get("/summary", response_model=CartSummaryResponse)
async def get_cart_summary(
    owner_id: str = Depends(get_owner_id),
    service: CartService = Depends(get_cart_service),
):
    cart = await retry_on_conflict(lambda: service.get_cart(owner_id), owner_id)
    return CartResponse.from_cart(cart).summary


@router.post("/items", response_model=CartResponse)
async def add_item(
    body: ServiceSnapshotIn,
    owner_id: str = Depends(get_owner_id),
    service: CartService = Depends(get_cart_service),
):
    """Add one unit of a service."""
    snapshot = body.to_snapshot()
    cart = await retry_on_conflict(
        lambda: service.add_item(owner_id, snapshot), owner_id,
    )
    return CartResponse.from_cart(cart)


@router.patch("/items/{service_id}", response_model=CartResponse)
async def set_item_quantity(
    service_id: str,
    body: QuantityIn,
    owner_id: str = Depends(get_owner_id),
    service: CartService = Depends(get_cart_service),
):
    """Overwrite a line's quantity; zero removes the line."""
    cart = await retry_on_conflict(
        lambda: service.set_item_quantity(owner_id, service_id, body.quantity),
        owner_id,
    )
    return CartResponse.from_cart(cart)


@router.delete("/items/{service_id}", response_model=CartResponse)
async def remove_item(
    service_id: str,
    owner_id: str = Depends(get_owner_id),
    service: CartService = Depends(get_cart_service),
):
    cart = await retry_on_conflict(
        lambda: service.remove_item(owner_id, service_id), owner_id,
    )
    return CartResponse.from_cart(cart)


@router.delete("", response_model=CartResponse)
async def clear_cart(
    owner_id: str = Depends(get_owner_id),
    service: CartService = Depends(get_cart_service),
):
    cart = await retry_on_conflict(lambda: service.clear(owner_id), owner_id)
    return CartResponse.from_cart(cart)


@router.post("/save", response_model=CartResponse)
async def save_cart(
    body: CartItemsIn,
    owner_id: str = Depends(get_owner_id),
    service: CartService = Depends(get_cart_service),
):
    """Replace the server cart with the client's item list."""
    client_items = body.to_client_items()
    cart = await retry_on_conflict(
        lambda: service.save_cart(owner_id, client_items), owner_id,
    )
    return CartResponse.from_cart(cart)


@router.post("/restore", response_model=CartResponse)
async def restore_cart(
    body: CartItemsIn,
    owner_id: str = Depends(get_owner_id),
    service: CartService = Depends(get_cart_service),
):
    """Merge the client's item list into the server cart; server lines win."""
    client_items = body.to_client_items()
    cart = await retry_on_conflict(
        lambda: service.restore_cart(owner_id, client_items), owner_id,
    )
    return CartResponse.from_cart(cart)
