"""Cart Aggregation — item value types, pure item mutations, and the derived summary.

Invariants:
    - compute_summary is a pure function of the item list:
      total_services = |items|, total_items = sum(quantity),
      subtotal = sum(item.subtotal), tax_amount = subtotal * TAX_RATE,
      total = subtotal + tax_amount
    - Every CartItem satisfies subtotal == price * quantity and 1 <= quantity <= 10
    - service_id is unique within one item list
    - Mutations return a NEW list and never mutate their input
    - Exceeding a cap raises LimitExceededError; nothing is silently clamped

Design Decisions:
    - ServiceSnapshot is a frozen value copied at add time: later catalogue
      changes never reach existing cart lines
    - to_record/from_record keep the JSON column format in one place
"""

from dataclasses import dataclass, replace
from datetime import datetime

from storefront.core.domain_types import (
    MAX_QUANTITY_PER_ITEM,
    MAX_SERVICES_PER_CART,
    TAX_RATE,
    ServiceCategory,
    ServiceType,
)
from storefront.core.errors import ErrorContext, LimitExceededError, NotFoundError


@dataclass(frozen=True)
class ServiceSnapshot:
    """Denormalized service attributes captured when the service enters the cart."""
    service_id: str
    name: str
    description: str
    price: float
    image: str
    category: ServiceCategory
    service_type: ServiceType = ServiceType.STANDARD
    duration: str | None = None
    tax_included: bool = True

    def to_record(self) -> dict:
        return {
            "service_id": self.service_id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "image": self.image,
            "category": self.category.value,
            "service_type": self.service_type.value,
            "duration": self.duration,
            "tax_included": self.tax_included,
        }

    @classmethod
    def from_record(cls, record: dict) -> "ServiceSnapshot":
        return cls(
            service_id=record["service_id"],
            name=record["name"],
            description=record["description"],
            price=float(record["price"]),
            image=record["image"],
            category=ServiceCategory(record["category"]),
            service_type=ServiceType(record.get("service_type", "Standard")),
            duration=record.get("duration"),
            tax_included=record.get("tax_included", True),
        )


@dataclass(frozen=True)
class CartItem:
    """One cart line — exclusively owned by its cart."""
    snapshot: ServiceSnapshot
    quantity: int
    subtotal: float
    added_at: datetime
    last_modified: datetime

    @property
    def service_id(self) -> str:
        return self.snapshot.service_id

    @property
    def price(self) -> float:
        return self.snapshot.price

    def to_record(self) -> dict:
        record = self.snapshot.to_record()
        record.update({
            "quantity": self.quantity,
            "subtotal": self.subtotal,
            "added_at": self.added_at.isoformat(),
            "last_modified": self.last_modified.isoformat(),
        })
        return record

    @classmethod
    def from_record(cls, record: dict) -> "CartItem":
        return cls(
            snapshot=ServiceSnapshot.from_record(record),
            quantity=int(record["quantity"]),
            subtotal=float(record["subtotal"]),
            added_at=datetime.fromisoformat(record["added_at"]),
            last_modified=datetime.fromisoformat(record["last_modified"]),
        )


@dataclass(frozen=True)
class CartSummary:
    """Derived aggregate of a cart's items."""
    total_services: int = 0
    total_items: int = 0
    subtotal: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0


def make_item(
    snapshot: ServiceSnapshot,
    quantity: int,
    added_at: datetime,
    now: datetime,
) -> CartItem:
    """Build a cart line with subtotal = price * quantity. Quantity must be in range."""
    if quantity > MAX_QUANTITY_PER_ITEM:
        raise LimitExceededError(
            f"Quantity cannot exceed {MAX_QUANTITY_PER_ITEM}",
            "quantity_per_item", MAX_QUANTITY_PER_ITEM,
            ErrorContext(record_id=snapshot.service_id),
        )
    if quantity < 1:
        raise ValueError(f"quantity must be at least 1, got {quantity}")
    return CartItem(
        snapshot=snapshot,
        quantity=quantity,
        subtotal=snapshot.price * quantity,
        added_at=added_at,
        last_modified=now,
    )


def compute_summary(items: list[CartItem]) -> CartSummary:
    """Recompute the summary from scratch. Never incremental."""
    subtotal = sum((i.subtotal for i in items), 0.0)
    tax_amount = subtotal * TAX_RATE
    return CartSummary(
        total_services=len(items),
        total_items=sum(i.quantity for i in items),
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
    )


def find_item(items: list[CartItem], service_id: str) -> CartItem | None:
    for item in items:
        if item.service_id == service_id:
            return item
    return None


def add_item(
    items: list[CartItem], snapshot: ServiceSnapshot, now: datetime,
) -> list[CartItem]:
    """Add one unit of a service: bump quantity if present, else append with quantity 1."""
    existing = find_item(items, snapshot.service_id)
    if existing is None:
        if len(items) >= MAX_SERVICES_PER_CART:
            raise LimitExceededError(
                f"Cart cannot have more than {MAX_SERVICES_PER_CART} different items",
                "services_per_cart", MAX_SERVICES_PER_CART,
                ErrorContext(record_id=snapshot.service_id),
            )
        return [*items, make_item(snapshot, 1, now, now)]

    if existing.quantity >= MAX_QUANTITY_PER_ITEM:
        raise LimitExceededError(
            f"Quantity cannot exceed {MAX_QUANTITY_PER_ITEM}",
            "quantity_per_item", MAX_QUANTITY_PER_ITEM,
            ErrorContext(record_id=snapshot.service_id),
        )
    bumped = _with_quantity(existing, existing.quantity + 1, now)
    return [bumped if i is existing else i for i in items]


def set_item_quantity(
    items: list[CartItem], service_id: str, quantity: int, now: datetime,
) -> list[CartItem]:
    """Overwrite a line's quantity; quantity <= 0 removes the line."""
    existing = find_item(items, service_id)
    if existing is None:
        raise NotFoundError("Cart item", service_id)
    if quantity <= 0:
        return remove_item(items, service_id)
    if quantity > MAX_QUANTITY_PER_ITEM:
        raise LimitExceededError(
            f"Quantity cannot exceed {MAX_QUANTITY_PER_ITEM}",
            "quantity_per_item", MAX_QUANTITY_PER_ITEM,
            ErrorContext(record_id=service_id),
        )
    updated = _with_quantity(existing, quantity, now)
    return [updated if i is existing else i for i in items]


def remove_item(items: list[CartItem], service_id: str) -> list[CartItem]:
    """Drop a line. Removing an absent service_id is a no-op."""
    return [i for i in items if i.service_id != service_id]


def clear_items() -> list[CartItem]:
    return []


def _with_quantity(item: CartItem, quantity: int, now: datetime) -> CartItem:
    return replace(
        item,
        quantity=quantity,
        subtotal=item.price * quantity,
        last_modified=now,
    )
