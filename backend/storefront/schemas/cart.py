"""Cart Schemas — client item payloads and cart responses.

Invariants:
    - ServiceSnapshotIn.price >= 0; category / service_type are closed enums
    - CartItemIn.quantity in 1..10 when supplied (absent means 1)
    - CartItemsIn carries at most 20 items
    - CartResponse.summary is read from the persisted summary columns

Design Decisions:
    - to_snapshot / to_client_item convert at the boundary: core types never
      depend on pydantic
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from storefront.core.cart_merge import ClientCartItem
from storefront.core.cart_summary import ServiceSnapshot
from storefront.core.domain_types import (
    MAX_QUANTITY_PER_ITEM,
    MAX_SERVICES_PER_CART,
    ServiceCategory,
    ServiceType,
)
from storefront.models.cart import Cart


class ServiceSnapshotIn(BaseModel):
    """Service attributes the client sends when adding to the cart."""
    service_id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    price: float = Field(ge=0)
    image: str = Field("", max_length=500)
    category: ServiceCategory = ServiceCategory.DEFAULT
    service_type: ServiceType = ServiceType.STANDARD
    duration: str | None = Field(None, max_length=50)
    tax_included: bool = True

    def to_snapshot(self) -> ServiceSnapshot:
        return ServiceSnapshot(
            service_id=self.service_id,
            name=self.name,
            description=self.description,
            price=self.price,
            image=self.image,
            category=self.category,
            service_type=self.service_type,
            duration=self.duration,
            tax_included=self.tax_included,
        )


class CartItemIn(ServiceSnapshotIn):
    """One client-held cart line (save / restore)."""
    quantity: int | None = Field(None, ge=1, le=MAX_QUANTITY_PER_ITEM)
    added_at: datetime | None = None

    def to_client_item(self) -> ClientCartItem:
        return ClientCartItem(
            snapshot=self.to_snapshot(),
            quantity=self.quantity,
            added_at=self.added_at,
        )


class CartItemsIn(BaseModel):
    items: list[CartItemIn] = Field(
        default_factory=list, max_length=MAX_SERVICES_PER_CART,
    )

    def to_client_items(self) -> list[ClientCartItem]:
        return [i.to_client_item() for i in self.items]


class QuantityIn(BaseModel):
    """New quantity for a line; zero or below removes it, above the cap is refused by the service."""
    quantity: int


class CartItemResponse(BaseModel):
    service_id: str
    name: str
    description: str
    price: float
    image: str
    category: ServiceCategory
    service_type: ServiceType
    duration: str | None = None
    tax_included: bool
    quantity: int
    subtotal: float
    added_at: datetime
    last_modified: datetime


class CartSummaryResponse(BaseModel):
    total_services: int
    total_items: int
    subtotal: float
    tax_amount: float
    total: float


class CartResponse(BaseModel):
    id: UUID
    owner_id: str
    items: list[CartItemResponse]
    summary: CartSummaryResponse
    version: int
    last_updated: datetime
    expires_at: datetime

    @classmethod
    def from_cart(cls, cart: Cart) -> "CartResponse":
        summary = cart.summary
        return cls(
            id=cart.id,
            owner_id=cart.owner_id,
            items=[CartItemResponse(**record) for record in cart.items or []],
            summary=CartSummaryResponse(
                total_services=summary.total_services,
                total_items=summary.total_items,
                subtotal=summary.subtotal,
                tax_amount=summary.tax_amount,
                total=summary.total,
            ),
            version=cart.version,
            last_updated=cart.last_updated,
            expires_at=cart.expires_at,
        )
